"""
Celery tasks for long-running solves.

Payloads are JSON documents parsed with the pydantic schemas. Progress is
published as task state ``PROGRESS``; ``AbortableAsyncResult(task_id).abort()``
stops a running solve, which then returns its best schedule so far with
status ``cancelled``.
"""

from typing import Any, Callable, Dict, Optional

from celery.contrib.abortable import AbortableTask
from pydantic import ValidationError

from courtplan.core.celery_app import celery_app
from courtplan.core.exceptions import SchedulingError
from courtplan.core.logging_config import get_logger
from courtplan.models import ProgressUpdate, ScheduleMode, SolveConfig
from courtplan.models.schemas import ProblemPayload, SchedulePayload, serialize_result
from courtplan.services.annealer import PollingCancellationToken
from courtplan.services.engine import generate, reoptimize

logger = get_logger(__name__)

ProgressSink = Callable[[Dict[str, Any]], None]


def _failure(message: str, error: Exception, details: Optional[dict] = None) -> Dict[str, Any]:
    return {
        "success": False,
        "message": message,
        "error": str(error),
        "error_type": type(error).__name__,
        "details": details or {},
    }


def _progress_adapter(on_progress: Optional[ProgressSink]):
    if on_progress is None:
        return None

    def report(update: ProgressUpdate):
        on_progress(update.as_dict())
    return report


def run_generate_payload(payload: Dict[str, Any], on_progress: Optional[ProgressSink] = None,
                         is_aborted: Optional[Callable[[], bool]] = None) -> Dict[str, Any]:
    """
    Solve a ``{"problem": ..., "mode": ..., "config": ...}`` payload.

    Returns:
        dict: Serialized result, or ``success: False`` with the error
    """
    try:
        problem = ProblemPayload.model_validate(payload["problem"]).to_problem()
        config = SolveConfig(**payload.get("config", {}))
        mode = ScheduleMode(payload.get("mode", ScheduleMode.OPTIMIZE.value))
        cancel_token = PollingCancellationToken(is_aborted) if is_aborted else None
        result = generate(
            problem, mode, config,
            progress=_progress_adapter(on_progress), cancel_token=cancel_token
        )
    except ValidationError as e:
        logger.warning("Rejected generate payload: %d validation error(s)", e.error_count())
        return _failure("Invalid payload", e, {"errors": e.errors(include_url=False, include_context=False)})
    except KeyError as e:
        logger.warning("Rejected generate payload: missing key %s", e)
        return _failure("Invalid payload", e, {"missing": e.args[0]})
    except SchedulingError as e:
        logger.warning("Schedule generation failed: %s", e.message)
        return _failure(f"Schedule generation failed: {e.message}", e, e.details)

    response = serialize_result(result)
    response["message"] = f"Schedule generated with {response['total_games']} games"
    return response


def run_reoptimize_payload(payload: Dict[str, Any], on_progress: Optional[ProgressSink] = None,
                           is_aborted: Optional[Callable[[], bool]] = None) -> Dict[str, Any]:
    """
    Re-optimize a ``{"problem": ..., "previous": [...], "locks": [...],
    "locked_rounds": [...], "config": ...}`` payload, where ``previous`` is the
    ``games`` list of an earlier result.
    """
    try:
        problem = ProblemPayload.model_validate(payload["problem"]).to_problem()
        previous = SchedulePayload.from_serialized(payload["previous"]).to_solution(problem)
        config = SolveConfig(**payload.get("config", {}))
        cancel_token = PollingCancellationToken(is_aborted) if is_aborted else None
        result = reoptimize(
            problem, previous, frozenset(payload.get("locks", [])), config,
            locked_rounds=payload.get("locked_rounds", []),
            progress=_progress_adapter(on_progress), cancel_token=cancel_token
        )
    except ValidationError as e:
        logger.warning("Rejected reoptimize payload: %d validation error(s)", e.error_count())
        return _failure("Invalid payload", e, {"errors": e.errors(include_url=False, include_context=False)})
    except KeyError as e:
        logger.warning("Rejected reoptimize payload: missing key %s", e)
        return _failure("Invalid payload", e, {"missing": e.args[0]})
    except SchedulingError as e:
        logger.warning("Re-optimization failed: %s", e.message)
        return _failure(f"Re-optimization failed: {e.message}", e, e.details)

    response = serialize_result(result)
    response["message"] = f"Schedule re-optimized, {len(response['diff'])} game(s) moved"
    return response


@celery_app.task(bind=True, base=AbortableTask, name="generate_schedule")
def generate_schedule(self, payload: Dict[str, Any]):
    """
    Async task to generate a schedule.

    Returns:
        dict: Serialized result with games, cost breakdown and statistics
    """
    self.update_state(state="PROGRESS", meta={"status": "Generating schedule..."})

    def publish(update: Dict[str, Any]):
        self.update_state(state="PROGRESS", meta={"status": "Optimizing schedule...", **update})

    return run_generate_payload(payload, on_progress=publish, is_aborted=self.is_aborted)


@celery_app.task(bind=True, base=AbortableTask, name="reoptimize_schedule")
def reoptimize_schedule(self, payload: Dict[str, Any]):
    """Async task to re-optimize an existing schedule around locked games."""
    self.update_state(state="PROGRESS", meta={"status": "Re-optimizing schedule..."})

    def publish(update: Dict[str, Any]):
        self.update_state(state="PROGRESS", meta={"status": "Re-optimizing schedule...", **update})

    return run_reoptimize_payload(payload, on_progress=publish, is_aborted=self.is_aborted)
