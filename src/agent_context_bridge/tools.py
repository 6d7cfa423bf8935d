"""Tool-facing operation surface.

``ToolDispatcher.execute`` accepts one flat parameter mapping with an
``operation`` field and always returns a JSON-serialisable envelope::

    {"success": true,  "operation": ..., ...payload, "timestamp": ...}
    {"success": false, "operation": ..., "error": ..., "errorType": ..., "timestamp": ...}

Operations form a closed ``Operation`` enum and every operation has one
Pydantic parameter model.  Parameter keys may be camelCase or snake_case.

Classes
-------
- Operation       — every supported operation name
- ToolDispatcher  — validates parameters, dispatches, wraps the result
"""
from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Mapping

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from agent_context_bridge.bridge import ContextBridge
from agent_context_bridge.errors import BridgeError
from agent_context_bridge.search.models import QueryConfig
from agent_context_bridge.session.record import CleanupStrategy

logger = logging.getLogger(__name__)


class Operation(str, Enum):
    CAPTURE_SESSION = "capture_session"
    RESTORE_SESSION = "restore_session"
    LIST_ACTIVE_SESSIONS = "list_active_sessions"
    CLEANUP_EXPIRED = "cleanup_expired"
    INJECT_REALTIME_DATA = "inject_realtime_data"
    PROCESS_QUERY_REALTIME = "process_query_realtime"
    SEARCH_ALL = "search_all"
    SEARCH_WITH_FRESHNESS = "search_with_freshness"
    GET_RELEVANT_CONTEXT = "get_relevant_context"
    INIT_SYSTEM = "init_system"
    CREATE_PROJECT_STATE = "create_project_state"
    UPDATE_STATE = "update_state"
    GET_CURRENT_STATE = "get_current_state"
    CREATE_CHECKPOINT = "create_checkpoint"
    LIST_CHECKPOINTS = "list_checkpoints"


# ---------------------------------------------------------------------------
# Parameter models
# ---------------------------------------------------------------------------


class _Params(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class CaptureSessionParams(_Params):
    session_id: str = Field(min_length=1)
    project_name: str = Field(min_length=1)
    context: dict[str, Any] | None = None
    metadata: dict[str, Any] | None = None
    smart: bool = False


class RestoreSessionParams(_Params):
    session_id: str = Field(min_length=1)
    project_name: str | None = None


class ListActiveSessionsParams(_Params):
    project_name: str | None = None
    max_results: int | None = Field(default=None, gt=0)


class CleanupExpiredParams(_Params):
    strategy: CleanupStrategy = CleanupStrategy.TIMESTAMP


class InjectRealtimeDataParams(_Params):
    context: dict[str, Any] | None = None


class ProcessQueryRealtimeParams(_Params):
    query: str = ""
    context: dict[str, Any] | None = None


class SearchAllParams(_Params):
    query: str = Field(min_length=1)
    databases: list[str] | None = None
    limit: int = Field(default=10, gt=0)


class SearchWithFreshnessParams(_Params):
    """Unset fields fall back to the dispatcher's default ``QueryConfig``."""

    query: str = Field(min_length=1)
    databases: list[str] | None = None
    limit: int | None = Field(default=None, gt=0)
    decay_factor: float | None = Field(default=None, ge=0.0)
    priority_window_hours: float | None = None
    priority_boost: float | None = Field(default=None, ge=1.0)
    freshness_enabled: bool | None = None

    def query_config(self, defaults: QueryConfig) -> QueryConfig:
        return _merge_query_config(
            defaults,
            limit=self.limit,
            decay_factor=self.decay_factor,
            priority_window_hours=self.priority_window_hours,
            priority_boost=self.priority_boost,
            freshness_enabled=self.freshness_enabled,
            target_backends=self.databases,
        )


class GetRelevantContextParams(_Params):
    project_name: str = Field(min_length=1)
    query: str | None = None
    databases: list[str] | None = None
    limit: int | None = Field(default=None, gt=0)


class InitSystemParams(_Params):
    pass


class CreateProjectStateParams(_Params):
    project_name: str = Field(min_length=1)
    state: dict[str, Any] | None = None
    context: dict[str, Any] | None = None


class UpdateStateParams(_Params):
    project_name: str = Field(min_length=1)
    state: dict[str, Any]


class ProjectParams(_Params):
    project_name: str = Field(min_length=1)


class CreateCheckpointParams(_Params):
    project_name: str = Field(min_length=1)
    context: dict[str, Any] | None = None


_Handler = Callable[[Any], Awaitable[dict[str, Any]]]


# ---------------------------------------------------------------------------
# Dispatcher
# ---------------------------------------------------------------------------


class ToolDispatcher:
    """Validate, dispatch and wrap tool operations.

    Parameters
    ----------
    bridge:
        The components every operation runs against.

    Example
    -------
    ::

        dispatcher = ToolDispatcher(ContextBridge.from_config())
        reply = await dispatcher.execute(
            {"operation": "restore_session", "sessionId": "s1"}
        )
    """

    def __init__(self, bridge: ContextBridge) -> None:
        self.bridge = bridge
        self._routes: dict[Operation, tuple[type[_Params], _Handler]] = {
            Operation.CAPTURE_SESSION: (CaptureSessionParams, self._capture_session),
            Operation.RESTORE_SESSION: (RestoreSessionParams, self._restore_session),
            Operation.LIST_ACTIVE_SESSIONS: (ListActiveSessionsParams, self._list_active_sessions),
            Operation.CLEANUP_EXPIRED: (CleanupExpiredParams, self._cleanup_expired),
            Operation.INJECT_REALTIME_DATA: (InjectRealtimeDataParams, self._inject_realtime_data),
            Operation.PROCESS_QUERY_REALTIME: (ProcessQueryRealtimeParams, self._process_query),
            Operation.SEARCH_ALL: (SearchAllParams, self._search_all),
            Operation.SEARCH_WITH_FRESHNESS: (SearchWithFreshnessParams, self._search_with_freshness),
            Operation.GET_RELEVANT_CONTEXT: (GetRelevantContextParams, self._get_relevant_context),
            Operation.INIT_SYSTEM: (InitSystemParams, self._init_system),
            Operation.CREATE_PROJECT_STATE: (CreateProjectStateParams, self._create_project_state),
            Operation.UPDATE_STATE: (UpdateStateParams, self._update_state),
            Operation.GET_CURRENT_STATE: (ProjectParams, self._get_current_state),
            Operation.CREATE_CHECKPOINT: (CreateCheckpointParams, self._create_checkpoint),
            Operation.LIST_CHECKPOINTS: (ProjectParams, self._list_checkpoints),
        }
        missing = set(Operation) - set(self._routes)
        if missing:
            raise RuntimeError(f"Operations without a handler: {sorted(op.value for op in missing)}")

    @staticmethod
    def operations() -> list[str]:
        return [operation.value for operation in Operation]

    async def execute(self, params: Mapping[str, Any] | None = None) -> dict[str, Any]:
        """Run one operation and return its envelope.  Never raises."""
        raw = dict(params or {})
        name = raw.pop("operation", None)

        try:
            operation = Operation(name)
        except ValueError:
            reply = self._failure(f"Unknown operation: {name!r}", "ValidationError", name)
            reply["availableOperations"] = self.operations()
            return reply

        model, handler = self._routes[operation]
        try:
            arguments = model.model_validate(raw)
            payload = await handler(arguments)
        except PydanticValidationError as exc:
            return self._failure(_describe(exc), "ValidationError", operation.value)
        except BridgeError as exc:
            return self._failure(exc.message, exc.error_type, operation.value)
        except Exception as exc:  # noqa: BLE001
            logger.exception("Operation %r failed unexpectedly", operation.value)
            return self._failure(str(exc) or type(exc).__name__, "InternalError", operation.value)

        reply: dict[str, Any] = {"success": True, "operation": operation.value}
        reply.update(payload)
        reply["timestamp"] = self.bridge.now().isoformat()
        return reply

    def _failure(self, message: str, error_type: str, operation: str | None) -> dict[str, Any]:
        return {
            "success": False,
            "operation": operation,
            "error": message,
            "errorType": error_type,
            "timestamp": self.bridge.now().isoformat(),
        }

    # ------------------------------------------------------------------
    # Session store
    # ------------------------------------------------------------------

    async def _capture_session(self, args: CaptureSessionParams) -> dict[str, Any]:
        if args.smart:
            return await self.bridge.capture_session_smart(
                args.session_id, args.project_name, args.context, args.metadata
            )
        receipt = await self.bridge.store.capture(
            args.session_id, args.project_name, args.context, args.metadata
        )
        return receipt.to_dict()

    async def _restore_session(self, args: RestoreSessionParams) -> dict[str, Any]:
        record = await self.bridge.store.restore(args.session_id, args.project_name)
        return {"session": record.summary()}

    async def _list_active_sessions(self, args: ListActiveSessionsParams) -> dict[str, Any]:
        listing = await self.bridge.store.list_active(args.project_name, args.max_results)
        return {"projectName": args.project_name, **listing.to_dict()}

    async def _cleanup_expired(self, args: CleanupExpiredParams) -> dict[str, Any]:
        report = await self.bridge.store.cleanup_expired(args.strategy)
        return report.to_dict()

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    async def _inject_realtime_data(self, args: InjectRealtimeDataParams) -> dict[str, Any]:
        injected = await self.bridge.pipeline.inject_realtime_data(args.context)
        return injected.to_dict()

    async def _process_query(self, args: ProcessQueryRealtimeParams) -> dict[str, Any]:
        result = await self.bridge.pipeline.process_query(args.query, args.context)
        payload = result.to_dict()
        if not result.success:
            payload["errorType"] = "PipelineError"
        return payload

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    async def _search_all(self, args: SearchAllParams) -> dict[str, Any]:
        aggregate = await self.bridge.aggregator.search_all(
            args.query,
            args.databases if args.databases is not None else self.bridge.query_config.target_backends,
            args.limit,
        )
        return aggregate.to_dict()

    async def _search_with_freshness(self, args: SearchWithFreshnessParams) -> dict[str, Any]:
        config = args.query_config(self.bridge.query_config)
        ranked = await self.bridge.aggregator.search_with_freshness(args.query, config)
        return ranked.to_dict()

    async def _get_relevant_context(self, args: GetRelevantContextParams) -> dict[str, Any]:
        config = _merge_query_config(
            self.bridge.query_config, limit=args.limit, target_backends=args.databases
        )
        return await self.bridge.get_relevant_context(args.project_name, args.query, config)

    # ------------------------------------------------------------------
    # Project state
    # ------------------------------------------------------------------

    async def _init_system(self, args: InitSystemParams) -> dict[str, Any]:
        return {"directories": await self.bridge.tracker.init_system()}

    async def _create_project_state(self, args: CreateProjectStateParams) -> dict[str, Any]:
        return await self.bridge.tracker.create_project_state(
            args.project_name, args.state, args.context
        )

    async def _update_state(self, args: UpdateStateParams) -> dict[str, Any]:
        return {"state": await self.bridge.tracker.update_state(args.project_name, args.state)}

    async def _get_current_state(self, args: ProjectParams) -> dict[str, Any]:
        return {"state": await self.bridge.tracker.get_current_state(args.project_name)}

    async def _create_checkpoint(self, args: CreateCheckpointParams) -> dict[str, Any]:
        return await self.bridge.tracker.create_checkpoint(args.project_name, args.context)

    async def _list_checkpoints(self, args: ProjectParams) -> dict[str, Any]:
        checkpoints, total = await self.bridge.tracker.list_checkpoints(args.project_name)
        return {
            "projectName": args.project_name,
            "checkpoints": [checkpoint.to_dict() for checkpoint in checkpoints],
            "total": total,
        }


def _describe(exc: PydanticValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error.get("loc", ())) or "params"
        parts.append(f"{location}: {error.get('msg', 'invalid value')}")
    return "Invalid parameters: " + "; ".join(parts)


def _merge_query_config(defaults: QueryConfig, **overrides: Any) -> QueryConfig:
    merged = defaults.model_dump()
    merged.update({key: value for key, value in overrides.items() if value is not None})
    return QueryConfig.model_validate(merged)
