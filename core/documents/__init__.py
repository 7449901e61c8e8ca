USERS = "users"
MENTOR_PROFILES = "mentorProfiles"
MENTOR_VERIFICATIONS = "mentorVerifications"
SESSIONS = "sessions"
NOTIFICATIONS = "notifications"
PSYCHOMETRIC_TESTS = "psychometricTests"
