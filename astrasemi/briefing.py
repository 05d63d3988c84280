"""
Daily Briefing Generator
========================

Turns a role's tasks into four short lists:
- top3: what to focus on today
- alerts: critical or overdue work
- blockers: blocked tasks
- dueOverdue: work due today or earlier

Primary path asks the LLM (bounded by BRIEFING_TIMEOUT, one strict-JSON
retry). Any failure on that path falls back to a deterministic rule over the
same tasks. Every generated briefing is stored as a BriefingLog row.
"""

import json
import logging
from datetime import date, datetime
from typing import List, Dict, Optional, Sequence

from sqlalchemy.orm import Session

from .config import get_settings
from .db.models import BriefingLog, Task
from .errors import ValidationFailed
from .llm_client import generate_json, string_list
from .schemas import TaskStatus, Priority, PRIORITY_RANK
from .tasks import get_role, list_tasks

logger = logging.getLogger(__name__)

HISTORY_LIMIT = 10

EMPTY_BRIEFING = {
    "top3": ["No tasks assigned"],
    "alerts": ["No alerts"],
    "blockers": ["No blockers"],
    "dueOverdue": ["No due items"],
}

FALLBACK_PLACEHOLDERS = {
    "top3": "No urgent actions identified",
    "alerts": "No critical alerts",
    "blockers": "No blocking dependencies",
    "dueOverdue": "No overdue items",
}

TOP3_PAD = "No additional actions"

BRIEFING_SYSTEM_PROMPT = """You are a helpful assistant that generates daily briefings for semiconductor staff.
Your role is to provide clear, beginner-friendly, action-oriented summaries.

CRITICAL RULES:
1. Use simple, corporate-friendly language suitable for non-technical staff.
2. Only reference tasks that are actually provided. Do NOT invent or hallucinate tasks.
3. Return valid JSON only with these exact keys: top3 (array of 3 strings), alerts (array of strings), blockers (array of strings), dueOverdue (array of strings).
4. Be concise and actionable."""


def _due(task: Task) -> Optional[date]:
    return task.due_date.date() if task.due_date else None


def _format_date(value: Optional[datetime]) -> str:
    return value.date().isoformat() if value else "No due date"


# =============================================================================
# Deterministic fallback
# =============================================================================

def build_fallback_briefing(tasks: Sequence[Task], today: Optional[date] = None) -> Dict[str, List[str]]:
    """Rule-based briefing used whenever the LLM path fails"""
    today = today or datetime.utcnow().date()

    active = [t for t in tasks if t.status in (TaskStatus.TODO, TaskStatus.IN_PROGRESS)]
    active.sort(key=lambda t: (
        -PRIORITY_RANK[t.priority],
        _due(t) is None,
        _due(t) or date.max,
    ))
    top3 = [t.title for t in active[:3]]

    alerts: List[str] = []
    for t in tasks:
        if t.status == TaskStatus.DONE:
            continue
        overdue = _due(t) is not None and _due(t) < today
        if (t.priority == Priority.CRITICAL or overdue) and t.title not in alerts:
            alerts.append(t.title)

    blockers = [t.title for t in tasks if t.status == TaskStatus.BLOCKED]

    due_overdue = [
        f"{t.title} (due: {_due(t).isoformat()})"
        for t in tasks
        if _due(t) is not None and _due(t) <= today and t.status != TaskStatus.DONE
    ]

    result = {
        "top3": top3,
        "alerts": alerts,
        "blockers": blockers,
        "dueOverdue": due_overdue,
    }
    for key, placeholder in FALLBACK_PLACEHOLDERS.items():
        if not result[key]:
            result[key] = [placeholder]
    return result


# =============================================================================
# LLM path
# =============================================================================

def summarize_tasks(tasks: Sequence[Task]) -> str:
    """Compact JSON snapshot of the tasks sent to the LLM"""
    return json.dumps([
        {
            "title": t.title,
            "description": t.description or "",
            "priority": t.priority.value,
            "status": t.status.value,
            "dueDate": _format_date(t.due_date),
        }
        for t in tasks
    ], indent=2)


def shape_llm_briefing(data: Dict) -> Dict[str, List[str]]:
    """Validate the LLM payload; bad fields become empty lists"""
    top3 = string_list(data.get("top3"), limit=3)
    while len(top3) < 3:
        top3.append(TOP3_PAD)
    return {
        "top3": top3,
        "alerts": string_list(data.get("alerts")),
        "blockers": string_list(data.get("blockers")),
        "dueOverdue": string_list(data.get("dueOverdue")),
    }


async def _briefing_from_llm(role_name: str, task_summary: str, timeout: float) -> Optional[Dict[str, List[str]]]:
    prompt = f"""Generate a daily briefing for a {role_name} based on these tasks:

{task_summary}

Provide:
1. top3: Top 3 actions to focus on today (array of exactly 3 task titles or action items)
2. alerts: Critical alerts that need immediate attention (array of strings)
3. blockers: Blocking dependencies or issues (array of strings)
4. dueOverdue: Items that are due or overdue (array of strings with due dates)

Return ONLY valid JSON, no markdown, no code blocks."""

    result = await generate_json(
        prompt=prompt,
        system_prompt=BRIEFING_SYSTEM_PROMPT,
        timeout=timeout,
        temperature=0.3,
    )
    if not result.ok:
        return None
    return shape_llm_briefing(result.data)


# =============================================================================
# Public API
# =============================================================================

async def generate_briefing(db: Session, role_id: Optional[str], timeout: Optional[float] = None) -> Dict:
    """
    Generate and persist a briefing for a role.

    Raises ValidationFailed without role_id, NotFound for an unknown role.
    """
    if not role_id:
        raise ValidationFailed("roleId is required")
    role = get_role(db, role_id)

    tasks = list_tasks(db, role_id)
    if not tasks:
        return dict(EMPTY_BRIEFING)

    task_summary = summarize_tasks(tasks)
    timeout = timeout if timeout is not None else get_settings().briefing_timeout

    source = "ai"
    try:
        briefing = await _briefing_from_llm(role.name, task_summary, timeout)
    except Exception as e:
        logger.warning(f"AI briefing failed for role {role_id}: {e}")
        briefing = None

    if briefing is None:
        logger.info(f"Using fallback briefing for role {role_id}")
        briefing = build_fallback_briefing(tasks)
        source = "fallback"

    log = BriefingLog(
        role_id=role_id,
        top3=json.dumps(briefing["top3"]),
        alerts=json.dumps(briefing["alerts"]),
        blockers=json.dumps(briefing["blockers"]),
        due_overdue=json.dumps(briefing["dueOverdue"]),
        source=source,
        raw_input_summary=task_summary,
    )
    db.add(log)
    db.commit()
    db.refresh(log)

    return {
        **briefing,
        "id": log.id,
        "generatedAt": log.generated_at.isoformat() if log.generated_at else None,
        "source": source,
    }


def briefing_history(db: Session, role_id: Optional[str], limit: int = HISTORY_LIMIT) -> List[Dict]:
    if not role_id:
        raise ValidationFailed("roleId is required")
    logs = (
        db.query(BriefingLog)
        .filter(BriefingLog.role_id == role_id)
        .order_by(BriefingLog.generated_at.desc())
        .limit(limit)
        .all()
    )
    return [log.to_dict() for log in logs]
