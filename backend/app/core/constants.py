"""
Centralized constants for the nudge engine and its scheduler (Encapsulate What Changes).

Change windows, thresholds or job IDs here instead of scattering literals across
detectors, the eligibility gate and main.
"""

# Scheduler job IDs (must match ids used in main.py add_job)
NUDGE_PERIODIC_JOB_ID = "nudges_periodic"

# Notification.type for everything this engine creates
NUDGE_NOTIFICATION_TYPE = "NUDGE"

# Eligibility gate
NUDGE_RATE_LIMIT_HOURS = 24   # any nudge within this window blocks every other nudge for the user
NUDGE_DEDUP_DAYS = 7          # same (signal type, entity) blocked within this window

# Inactivity re-engagement: last attendance strictly inside (MAX_DAYS, MIN_DAYS) ago
INACTIVITY_MIN_DAYS = 14
INACTIVITY_MAX_DAYS = 90
INACTIVITY_CANDIDATE_LIMIT = 50  # cap per run; oldest last attendance first

# Low fill rate: approved events between MIN_DAYS and MAX_DAYS out (inclusive)
LOW_FILL_MIN_DAYS_OUT = 1
LOW_FILL_MAX_DAYS_OUT = 5
LOW_FILL_HISTORY_EVENTS = 10    # organizer's most recent past events averaged
LOW_FILL_THRESHOLD_PERCENT = 50  # fires strictly below

# Regulars not signed up
REGULARS_MIN_DAYS_OUT = 3
REGULARS_MIN_PAST_EVENTS = 3       # organizer history needed to define "regular"
REGULARS_MIN_ATTENDANCES = 3       # distinct past events attended to count as a regular
REGULARS_DISPLAY_NAMES_LIMIT = 5   # names carried in the signal / metadata

# Copy limits (generated and fallback)
NUDGE_TITLE_MAX_CHARS = 60
NUDGE_BODY_MAX_CHARS = 140
NUDGE_COPY_MAX_TOKENS = 200

# Deep links
DISCOVER_LINK = "/discover"
