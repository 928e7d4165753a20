"""Feedback logging and analytics.

Feedback is write-only from the conversation's point of view: each rating is
recorded on the event log and only read back here, for analysis.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List, Optional

from .constants import UNKNOWN_SESSION_ID
from .logger import LOGGER
from .models import EventKind, Feedback, utc_now

if TYPE_CHECKING:
    from .state import AppState

HIGH_CONFIDENCE = 0.75
LOW_CONFIDENCE = 0.6


class FeedbackSystem:
    """Collects and analyses helpful / not-helpful ratings of answers."""

    def __init__(self, state: "AppState") -> None:
        self.state = state

    def submit(self, answer_id: str, helpful: bool, comment: Optional[str] = None) -> Feedback:
        session_id, user = self.state.identity()
        comment = comment.strip() if comment else None
        feedback = Feedback(
            answer_id=answer_id,
            helpful=helpful,
            comment=comment or None,
            session_id=session_id or UNKNOWN_SESSION_ID,
            user=user,
            ts=utc_now(),
        )
        self.state.event_log.record(
            EventKind.FEEDBACK_SUBMITTED,
            {"answer_id": answer_id, "helpful": helpful, "comment": feedback.comment},
        )
        LOGGER.info("Feedback for answer %s: %s", answer_id, "helpful" if helpful else "not helpful")
        return feedback

    def get_all_feedback(self) -> List[Dict[str, Any]]:
        """Recorded feedback, each entry joined with its answer's confidence when known."""
        confidence_by_answer = {
            event.payload.get("answer_id"): event.payload.get("confidence")
            for event in self.state.event_log.filter(EventKind.ANSWER_GENERATED)
            if "confidence" in event.payload
        }
        feedback: List[Dict[str, Any]] = []
        for event in self.state.event_log.filter(EventKind.FEEDBACK_SUBMITTED):
            answer_id = event.payload.get("answer_id")
            feedback.append(
                {
                    "answer_id": answer_id,
                    "helpful": bool(event.payload.get("helpful")),
                    "comment": event.payload.get("comment"),
                    "confidence": confidence_by_answer.get(answer_id),
                    "session_id": event.session_id,
                    "user": event.user,
                    "timestamp": event.timestamp.isoformat(),
                }
            )
        return feedback

    def analyze(self) -> Dict[str, Any]:
        feedback = self.get_all_feedback()
        if not feedback:
            return {"error": "No feedback data available"}

        total = len(feedback)
        helpful = sum(1 for item in feedback if item["helpful"])
        not_helpful = total - helpful

        rated = [item for item in feedback if item["confidence"] is not None]
        high_conf_helpful = [i for i in rated if i["helpful"] and i["confidence"] >= HIGH_CONFIDENCE]
        high_conf_wrong = [i for i in rated if not i["helpful"] and i["confidence"] >= HIGH_CONFIDENCE]
        low_conf_helpful = [i for i in rated if i["helpful"] and i["confidence"] < LOW_CONFIDENCE]
        low_conf_wrong = [i for i in rated if not i["helpful"] and i["confidence"] < LOW_CONFIDENCE]

        analysis: Dict[str, Any] = {
            "total_feedback": total,
            "helpful": helpful,
            "not_helpful": not_helpful,
            "satisfaction_rate": helpful / total * 100,
            "with_comments": sum(1 for item in feedback if item["comment"]),
            "confidence_calibration": {
                "high_conf_accurate": len(high_conf_helpful),
                "high_conf_wrong": len(high_conf_wrong),
                "overconfidence_rate": len(high_conf_wrong)
                / max(len(high_conf_helpful) + len(high_conf_wrong), 1)
                * 100,
                "low_conf_accurate": len(low_conf_helpful),
                "low_conf_wrong": len(low_conf_wrong),
                "underconfidence_rate": len(low_conf_helpful)
                / max(len(low_conf_helpful) + len(low_conf_wrong), 1)
                * 100,
            },
            "recommendations": [],
        }

        calibration = analysis["confidence_calibration"]
        if calibration["overconfidence_rate"] > 20:
            analysis["recommendations"].append(
                "Answers are overconfident: review high-confidence answers rated not helpful"
            )
        if calibration["underconfidence_rate"] > 30:
            analysis["recommendations"].append(
                "Answers are underconfident: low-confidence answers are often rated helpful"
            )
        if analysis["satisfaction_rate"] < 60 and total >= 5:
            analysis["recommendations"].append(
                "Low satisfaction: review the most recent not-helpful answers and their sources"
            )
        return analysis

    def get_problem_answers(self, limit: int = 10) -> List[Dict[str, Any]]:
        """Not-helpful ratings, most confident answers first."""
        problems = [item for item in self.get_all_feedback() if not item["helpful"]]
        problems.sort(key=lambda item: item["confidence"] or 0.0, reverse=True)
        return problems[:limit]


__all__ = ["FeedbackSystem"]
