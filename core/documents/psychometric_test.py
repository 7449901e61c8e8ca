TEST_COMPLETED = "completed"


def _scores(result, key="scores"):
    return (result or {}).get(key) or {}


def transform_test_result(test):
    """Shape a stored psychometric test into the dashboard's report sections."""
    riasec = test.get("riasecResult") or {}
    brain = test.get("brainProfileResult") or {}
    employability = test.get("employabilityResult") or {}
    insights = test.get("personalInsightsResult") or {}

    riasec_scores = _scores(riasec)
    quadrants = _scores(brain, "quadrantScores")
    employability_scores = _scores(employability)

    return {
        "_id": test.get("_id"),
        "userId": test.get("userId"),
        "sections": {
            "interests": {
                "realistic": riasec_scores.get("R") or 0,
                "investigative": riasec_scores.get("I") or 0,
                "artistic": riasec_scores.get("A") or 0,
                "social": riasec_scores.get("S") or 0,
                "enterprising": riasec_scores.get("E") or 0,
                "conventional": riasec_scores.get("C") or 0,
                "hollandCode": riasec.get("hollandCode") or "N/A",
            },
            "personality": {
                "L1": quadrants.get("L1") or 0,
                "L2": quadrants.get("L2") or 0,
                "R1": quadrants.get("R1") or 0,
                "R2": quadrants.get("R2") or 0,
                "dominantQuadrants": brain.get("dominantQuadrants") or [],
                "personalityTypes": brain.get("personalityTypes") or [],
            },
            "employability": {
                "selfManagement": employability_scores.get("selfManagement") or 0,
                "teamWork": employability_scores.get("teamWork") or 0,
                "enterprising": employability_scores.get("enterprising") or 0,
                "problemSolving": employability_scores.get("problemSolving") or 0,
                "speakingListening": employability_scores.get("speakingListening") or 0,
                "quotient": employability.get("overallScore") or 0,
            },
            "characterStrengths": {
                "top3Strengths": insights.get("topStrengths") or [],
                "categories": insights.get("strengthCategories") or [],
                "values": insights.get("coreValues") or [],
            },
        },
        "completedAt": test.get("completedAt") or test.get("createdAt"),
        "isValid": test.get("status") == TEST_COMPLETED,
    }
