"""Dashboard aggregations over users, sessions and verifications.

Every view here is read-only and independent of the others, so callers run them
side by side through :func:`core.parallel.gather`.
"""
from datetime import datetime, timedelta

from .database import get_collection, utcnow
from .documents import MENTOR_PROFILES, MENTOR_VERIFICATIONS, NOTIFICATIONS, SESSIONS, USERS
from .documents.mentor import DEFAULT_MENTOR_RATING, VERIFICATION_PENDING
from .documents.session import (
    PAYMENT_SUCCEEDED,
    SESSION_CANCELLED,
    SESSION_COMPLETED,
    SESSION_IN_PROGRESS,
    SESSION_NO_SHOW,
    SESSION_SCHEDULED,
    cents_to_amount,
)
from .documents.user import ROLE_MENTEE, ROLE_MENTOR, display_name, to_api_role
from .parallel import gather


TIME_RANGE_DAYS = {"7d": 7, "30d": 30, "90d": 90, "1y": 365}
DEFAULT_TIME_RANGE = "30d"
FALLBACK_RANGE_DAYS = 365
DAILY_TIME_RANGES = {"7d", "30d"}

WEEKDAY_LABELS = ["Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"]

SYSTEM_UPTIME = 99.9
ERROR_RATE = 0.01

TOP_LIMIT = 10
RECENT_ACTIVITY_LIMIT = 10


def growth_percentage(current, previous):
    if not previous:
        return 0
    return round((current - previous) / previous * 100, 2)


def _rate(part, whole, digits=2):
    if not whole:
        return 0
    return round(part / whole * 100, digits)


def resolve_time_range(time_range):
    days = TIME_RANGE_DAYS.get(time_range, FALLBACK_RANGE_DAYS)
    end = utcnow()
    return end - timedelta(days=days), end


def _sum_payments(match):
    rows = list(
        get_collection(SESSIONS).aggregate(
            [
                {"$match": {**match, "payment.status": PAYMENT_SUCCEEDED}},
                {"$group": {"_id": None, "total": {"$sum": "$payment.amount"}}},
            ]
        )
    )
    return rows[0]["total"] if rows else 0


def user_growth(start, end):
    rows = get_collection(USERS).aggregate(
        [
            {"$match": {"createdAt": {"$gte": start, "$lte": end}}},
            {
                "$group": {
                    "_id": {
                        "date": {"$dateToString": {"format": "%Y-%m-%d", "date": "$createdAt"}},
                        "role": "$role",
                    },
                    "count": {"$sum": 1},
                }
            },
        ]
    )
    per_day = {}
    for row in rows:
        bucket = per_day.setdefault(row["_id"]["date"], {"mentors": 0, "students": 0})
        if row["_id"]["role"] == ROLE_MENTOR:
            bucket["mentors"] += row["count"]
        elif row["_id"]["role"] == ROLE_MENTEE:
            bucket["students"] += row["count"]

    series = []
    total_mentors = 0
    total_students = 0
    for offset in range((end.date() - start.date()).days + 1):
        day = (start.date() + timedelta(days=offset)).isoformat()
        bucket = per_day.get(day, {"mentors": 0, "students": 0})
        total_mentors += bucket["mentors"]
        total_students += bucket["students"]
        series.append(
            {
                "date": day,
                "newMentors": bucket["mentors"],
                "newStudents": bucket["students"],
                "newTotal": bucket["mentors"] + bucket["students"],
                "totalMentors": total_mentors,
                "totalStudents": total_students,
                "totalUsers": total_mentors + total_students,
            }
        )
    return series


def revenue(start, end, time_range):
    date_format = "%Y-%m-%d" if time_range in DAILY_TIME_RANGES else "%Y-%m"
    rows = get_collection(SESSIONS).aggregate(
        [
            {
                "$match": {
                    "createdAt": {"$gte": start, "$lte": end},
                    "payment.status": PAYMENT_SUCCEEDED,
                }
            },
            {
                "$group": {
                    "_id": {"$dateToString": {"format": date_format, "date": "$createdAt"}},
                    "revenue": {"$sum": "$payment.amount"},
                    "sessions": {"$sum": 1},
                }
            },
            {"$sort": {"_id": 1}},
        ]
    )
    return [
        {"date": row["_id"], "revenue": cents_to_amount(row["revenue"]), "sessions": row["sessions"]}
        for row in rows
    ]


def top_mentors(start):
    rows = get_collection(SESSIONS).aggregate(
        [
            {"$match": {"createdAt": {"$gte": start}, "status": SESSION_COMPLETED}},
            {
                "$group": {
                    "_id": "$mentorId",
                    "sessions": {"$sum": 1},
                    "earnings": {
                        "$sum": {
                            "$cond": [
                                {"$eq": ["$payment.status", PAYMENT_SUCCEEDED]},
                                "$payment.amount",
                                0,
                            ]
                        }
                    },
                }
            },
            {
                "$lookup": {
                    "from": USERS,
                    "localField": "_id",
                    "foreignField": "_id",
                    "as": "user",
                }
            },
            {
                "$lookup": {
                    "from": MENTOR_PROFILES,
                    "localField": "_id",
                    "foreignField": "userId",
                    "as": "profile",
                }
            },
            {"$unwind": "$user"},
            {"$unwind": {"path": "$profile", "preserveNullAndEmptyArrays": True}},
            {"$sort": {"sessions": -1}},
            {"$limit": TOP_LIMIT},
        ]
    )
    return [
        {
            "_id": row["_id"],
            "name": display_name(row["user"]),
            "sessions": row["sessions"],
            "earnings": cents_to_amount(row["earnings"]),
            "rating": (row.get("profile") or {}).get("rating", DEFAULT_MENTOR_RATING),
        }
        for row in rows
    ]


def popular_subjects(start):
    rows = list(
        get_collection(SESSIONS).aggregate(
            [
                {"$match": {"createdAt": {"$gte": start}, "status": SESSION_COMPLETED}},
                {
                    "$lookup": {
                        "from": MENTOR_PROFILES,
                        "localField": "mentorId",
                        "foreignField": "userId",
                        "as": "profile",
                    }
                },
                {"$unwind": "$profile"},
                {"$unwind": "$profile.expertise"},
                {"$group": {"_id": "$profile.expertise", "sessions": {"$sum": 1}}},
                {"$sort": {"sessions": -1}},
                {"$limit": TOP_LIMIT},
            ]
        )
    )
    total = sum(row["sessions"] for row in rows)
    return [
        {
            "subject": row["_id"],
            "sessions": row["sessions"],
            "percentage": round(row["sessions"] / total * 100) if total else 0,
        }
        for row in rows
    ]


def weekly_session_stats(start):
    rows = get_collection(SESSIONS).aggregate(
        [
            {"$match": {"createdAt": {"$gte": start}}},
            {
                "$group": {
                    "_id": {"day": {"$dayOfWeek": "$createdAt"}, "status": "$status"},
                    "count": {"$sum": 1},
                }
            },
        ]
    )
    per_day = {}
    for row in rows:
        bucket = per_day.setdefault(row["_id"]["day"], {"completed": 0, "cancelled": 0, "noShow": 0})
        status = row["_id"]["status"]
        if status == SESSION_COMPLETED:
            bucket["completed"] += row["count"]
        elif status == SESSION_CANCELLED:
            bucket["cancelled"] += row["count"]
        elif status == SESSION_NO_SHOW:
            bucket["noShow"] += row["count"]
    return [
        {"day": WEEKDAY_LABELS[day - 1], **per_day[day]}
        for day in sorted(per_day)
    ]


def user_engagement(start):
    users = get_collection(USERS)
    sessions = get_collection(SESSIONS)
    now = utcnow()
    counts = gather(
        total_users=lambda: users.count_documents({"isActive": True}),
        monthly_active=lambda: users.count_documents(
            {"isActive": True, "lastLoginAt": {"$gte": now - timedelta(days=30)}}
        ),
        weekly_active=lambda: users.count_documents(
            {"isActive": True, "lastLoginAt": {"$gte": now - timedelta(days=7)}}
        ),
        logged_in=lambda: users.count_documents({"isActive": True, "lastLoginAt": {"$exists": True}}),
        sessions=lambda: sessions.count_documents({"createdAt": {"$gte": start}}),
        completed=lambda: sessions.count_documents(
            {"createdAt": {"$gte": start}, "status": SESSION_COMPLETED}
        ),
    )
    return {
        "totalUsers": counts["total_users"],
        "dailyActiveUsers": counts["weekly_active"],
        "monthlyActiveUsers": counts["monthly_active"],
        "completionRate": round(_rate(counts["completed"], counts["sessions"])),
        "userRetention": round(_rate(counts["logged_in"], counts["total_users"])),
        "totalLoggedInUsers": counts["logged_in"],
    }


def platform_health():
    counts = gather(
        users=lambda: get_collection(USERS).count_documents({"isActive": True}),
        sessions=lambda: get_collection(SESSIONS).count_documents({"status": SESSION_COMPLETED}),
        verifications=lambda: get_collection(MENTOR_VERIFICATIONS).count_documents(
            {"status": VERIFICATION_PENDING}
        ),
    )
    return {
        "systemUptime": SYSTEM_UPTIME,
        "errorRate": ERROR_RATE,
        "totalUsers": counts["users"],
        "completedSessions": counts["sessions"],
        "pendingVerifications": counts["verifications"],
    }


def build_analytics(time_range=DEFAULT_TIME_RANGE):
    start, end = resolve_time_range(time_range)
    data = gather(
        userGrowthData=lambda: user_growth(start, end),
        revenueData=lambda: revenue(start, end, time_range),
        topMentors=lambda: top_mentors(start),
        popularSubjects=lambda: popular_subjects(start),
        weeklySessionStats=lambda: weekly_session_stats(start),
        userEngagement=lambda: user_engagement(start),
        platformHealth=platform_health,
    )
    data["timeRange"] = time_range
    data["generatedAt"] = end
    return data


def _month_bounds(now):
    start_of_month = datetime(now.year, now.month, 1)
    if now.month == 1:
        start_of_last_month = datetime(now.year - 1, 12, 1)
    else:
        start_of_last_month = datetime(now.year, now.month - 1, 1)
    return start_of_month, start_of_last_month


def _headline_counts(now):
    users = get_collection(USERS)
    sessions = get_collection(SESSIONS)
    return {
        "totalUsers": lambda: users.count_documents({"isActive": True}),
        "totalMentors": lambda: users.count_documents({"role": ROLE_MENTOR, "isActive": True}),
        "totalStudents": lambda: users.count_documents({"role": ROLE_MENTEE, "isActive": True}),
        "activeSessions": lambda: sessions.count_documents(
            {"status": SESSION_SCHEDULED, "scheduledAt": {"$gte": now}}
        ),
        "pendingVerifications": lambda: get_collection(MENTOR_VERIFICATIONS).count_documents(
            {"status": VERIFICATION_PENDING}
        ),
        "completedSessions": lambda: sessions.count_documents({"status": SESSION_COMPLETED}),
    }


def dashboard_stats():
    now = utcnow()
    start_of_month, start_of_last_month = _month_bounds(now)
    users = get_collection(USERS)
    sessions = get_collection(SESSIONS)
    results = gather(
        **_headline_counts(now),
        totalRevenue=lambda: _sum_payments({"status": SESSION_COMPLETED}),
        verifiedMentors=lambda: get_collection(MENTOR_PROFILES).count_documents({"isVerified": True}),
        currentMonthUsers=lambda: users.count_documents({"createdAt": {"$gte": start_of_month}}),
        lastMonthUsers=lambda: users.count_documents(
            {"createdAt": {"$gte": start_of_last_month, "$lt": start_of_month}}
        ),
        totalSessions=lambda: sessions.count_documents({}),
    )
    return {
        "totalUsers": results["totalUsers"],
        "totalMentors": results["totalMentors"],
        "totalStudents": results["totalStudents"],
        "activeSessions": results["activeSessions"],
        "pendingVerifications": results["pendingVerifications"],
        "totalRevenue": cents_to_amount(results["totalRevenue"]),
        "monthlyGrowth": growth_percentage(results["currentMonthUsers"], results["lastMonthUsers"]),
        "completionRate": _rate(results["completedSessions"], results["totalSessions"]),
        "completedSessions": results["completedSessions"],
        "verifiedMentors": results["verifiedMentors"],
    }


def recent_activity(since):
    users = get_collection(USERS).find({"createdAt": {"$gte": since}}).sort("createdAt", -1).limit(5)
    sessions = get_collection(SESSIONS).find({"updatedAt": {"$gte": since}}).sort("updatedAt", -1).limit(5)
    verifications = (
        get_collection(MENTOR_VERIFICATIONS)
        .find({"createdAt": {"$gte": since}})
        .sort("createdAt", -1)
        .limit(3)
    )

    activities = []
    for user in users:
        activities.append(
            {
                "type": "user_registered",
                "message": f"{display_name(user)} registered as {to_api_role(user.get('role'))}",
                "timestamp": user.get("createdAt"),
                "severity": "info",
            }
        )
    for session in sessions:
        status = session.get("status")
        severity = {SESSION_COMPLETED: "success", SESSION_CANCELLED: "warning"}.get(status, "info")
        activities.append(
            {
                "type": "session_update",
                "message": f"Session {status}",
                "timestamp": session.get("updatedAt"),
                "severity": severity,
            }
        )
    for verification in verifications:
        activities.append(
            {
                "type": "verification_submitted",
                "message": "New mentor verification submitted",
                "timestamp": verification.get("createdAt"),
                "severity": "warning",
            }
        )

    activities.sort(key=lambda item: item["timestamp"] or datetime.min, reverse=True)
    return activities[:RECENT_ACTIVITY_LIMIT]


def system_health():
    active_connections = get_collection(SESSIONS).count_documents(
        {"status": {"$in": [SESSION_SCHEDULED, SESSION_IN_PROGRESS]}}
    )
    return {
        "status": "healthy",
        "uptime": SYSTEM_UPTIME,
        "errorRate": ERROR_RATE,
        "activeConnections": active_connections,
    }


def weekly_engagement(since):
    counts = gather(
        active_users=lambda: get_collection(USERS).count_documents(
            {"isActive": True, "lastLoginAt": {"$gte": since}}
        ),
        sessions=lambda: get_collection(SESSIONS).count_documents({"createdAt": {"$gte": since}}),
        completed=lambda: get_collection(SESSIONS).count_documents(
            {"createdAt": {"$gte": since}, "status": SESSION_COMPLETED}
        ),
    )
    return {
        "weeklyActiveUsers": counts["active_users"],
        "sessionsThisWeek": counts["sessions"],
        "completionRate": _rate(counts["completed"], counts["sessions"]),
    }


def dashboard_overview():
    now = utcnow()
    start_of_month, start_of_last_month = _month_bounds(now)
    last_month = {"$gte": start_of_last_month, "$lt": start_of_month}
    this_month = {"$gte": start_of_month}
    users = get_collection(USERS)
    sessions = get_collection(SESSIONS)

    results = gather(
        **_headline_counts(now),
        currentMonthUsers=lambda: users.count_documents({"createdAt": this_month}),
        lastMonthUsers=lambda: users.count_documents({"createdAt": last_month}),
        currentMonthSessions=lambda: sessions.count_documents({"createdAt": this_month}),
        lastMonthSessions=lambda: sessions.count_documents({"createdAt": last_month}),
        currentMonthRevenue=lambda: _sum_payments({"createdAt": this_month}),
        lastMonthRevenue=lambda: _sum_payments({"createdAt": last_month}),
        unreadNotifications=lambda: get_collection(NOTIFICATIONS).count_documents({"read": False}),
        recentActivity=lambda: recent_activity(now - timedelta(hours=24)),
        systemHealth=system_health,
        userEngagement=lambda: weekly_engagement(now - timedelta(days=7)),
    )

    completed = results["completedSessions"]
    active = results["activeSessions"]
    return {
        "stats": {
            "totalUsers": results["totalUsers"],
            "totalMentors": results["totalMentors"],
            "totalStudents": results["totalStudents"],
            "activeSessions": active,
            "pendingVerifications": results["pendingVerifications"],
            "completedSessions": completed,
            "totalRevenue": cents_to_amount(results["currentMonthRevenue"]),
            "userGrowth": growth_percentage(results["currentMonthUsers"], results["lastMonthUsers"]),
            "sessionGrowth": growth_percentage(
                results["currentMonthSessions"], results["lastMonthSessions"]
            ),
            "revenueGrowth": growth_percentage(
                results["currentMonthRevenue"], results["lastMonthRevenue"]
            ),
            "completionRate": _rate(completed, completed + active),
        },
        "quickActions": {
            "pendingVerifications": results["pendingVerifications"],
            "newUsers": results["currentMonthUsers"],
            "activeSessions": active,
            "unreadNotifications": results["unreadNotifications"],
        },
        "recentActivity": results["recentActivity"],
        "systemHealth": results["systemHealth"],
        "userEngagement": results["userEngagement"],
        "generatedAt": now,
    }
