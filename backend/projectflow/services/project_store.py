"""ProjectStore: single source of truth for projects, stages and subtasks.

Architecture:
- Owns the canonical list of Projects (each embedding its stages and subtasks)
- Every mutation runs under one asyncio.Lock, so structural edits never interleave;
  with a StoreMutex (Redis backend) mutations are also serialized across
  processes and start from a fresh load of the persisted collection
- Mutations build new model instances and swap them in only after the full
  collection has been written to the BlobStore; a failed write leaves state as it was
- Unknown project/stage/subtask ids are signalled by returning None (False for
  deletes); nothing is mutated or persisted in that case
- Invalid field values raise ValidationError before anything is touched
- Reads return deep copies; callers re-read after each mutation
"""

import asyncio
import json
import uuid
from collections import Counter
from collections.abc import AsyncIterator, Mapping, Sequence
from contextlib import asynccontextmanager
from typing import Any, TypeVar

import structlog
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from projectflow.core.config import get_settings
from projectflow.core.exceptions import OrderingInvariantError, PersistenceFailure, ValidationError
from projectflow.domain import ordering
from projectflow.domain.models import (
    CamelModel,
    Project,
    ProjectFields,
    Stage,
    Subtask,
    SubtaskCore,
    SubtaskStatus,
    utcnow,
)
from projectflow.domain.reconciler import reconcile_categorization
from projectflow.domain.templates import stages_for_project_types
from projectflow.schemas.planning import CategorizedSubtask
from projectflow.storage.base import BlobStore, StoreMutex

logger = structlog.get_logger(__name__)

M = TypeVar("M", bound=CamelModel)

# Fields that only dedicated operations may change
_PROJECT_PROTECTED = {"id", "created_at", "stages", "subtasks"}
_STAGE_PROTECTED = {"id", "created_at", "order"}
_SUBTASK_PROTECTED = {"id", "created_at", "order", "stage_id"}


def new_id() -> str:
    return str(uuid.uuid4())


def _describe(exc: PydanticValidationError) -> tuple[str, str | None]:
    first = exc.errors()[0]
    field = ".".join(str(part) for part in first["loc"]) or None
    return f"{field}: {first['msg']}" if field else first["msg"], field


def _validate(model_cls: type[M], data: Any) -> M:
    """model_validate, translating pydantic errors into ValidationError."""
    try:
        return model_cls.model_validate(data)
    except PydanticValidationError as e:
        message, field = _describe(e)
        raise ValidationError(message, field=field) from e


def _normalize(model_cls: type[CamelModel], updates: Mapping[str, Any]) -> dict[str, Any]:
    try:
        return model_cls.normalize_keys(updates)
    except KeyError as e:
        raise ValidationError(f"Unknown field '{e.args[0]}'", field=str(e.args[0])) from e


def _merge(model: M, updates: Mapping[str, Any], protected: set[str]) -> M:
    """Shallow-merge ``updates`` into ``model`` and re-validate.

    Protected fields are dropped from the update, not rejected.
    """
    normalized = _normalize(type(model), updates)
    ignored = sorted(protected & normalized.keys())
    if ignored:
        logger.warning("protected_fields_ignored", model=type(model).__name__, fields=ignored)
    data = model.model_dump()
    data.update({k: v for k, v in normalized.items() if k not in protected})
    return _validate(type(model), data)


def _as_data(item: BaseModel | Mapping[str, Any]) -> Any:
    return item.model_dump() if isinstance(item, BaseModel) else item


def _in_sequence(original: Sequence[Subtask], updated: Sequence[Subtask]) -> list[Subtask]:
    """Return ``updated`` items laid out in the order ids appear in ``original``."""
    by_id = {st.id: st for st in updated}
    return [by_id[st.id] for st in original if st.id in by_id]


class ProjectStore:
    """Owns the Project collection and exposes the only sanctioned mutation path.

    Uses dependency injection (takes a BlobStore and optional StoreMutex) so
    tests can run against in-memory stores or fakeredis.
    """

    def __init__(
        self,
        blob_store: BlobStore,
        storage_key: str | None = None,
        strict_ordering_checks: bool | None = None,
        mutex: StoreMutex | None = None,
    ):
        settings = get_settings()
        self._blob_store = blob_store
        self._key = storage_key or settings.storage_key
        self._strict = settings.strict_ordering_checks if strict_ordering_checks is None else strict_ordering_checks
        self._mutex = mutex
        self._projects: list[Project] = []
        self._lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    async def hydrate(self) -> int:
        """Replace in-memory state with the persisted collection.

        Returns:
            Number of projects loaded (0 when nothing was stored yet)

        Raises:
            PersistenceFailure: If the blob cannot be read or parsed
        """
        async with self._lock:
            count = await self._load()
        logger.info("projects_hydrated", count=count)
        return count

    @asynccontextmanager
    async def _mutation(self) -> AsyncIterator[None]:
        """Serialize one mutation.

        With a cross-process mutex the collection is reloaded after the mutex
        is taken, so every mutation starts from the latest persisted state.
        """
        async with self._lock:
            if self._mutex is None:
                yield
                return
            async with self._mutex.hold():
                await self._load()
                yield

    async def _load(self) -> int:
        try:
            raw = await self._blob_store.load(self._key)
        except Exception as e:
            logger.error("projects_load_failed", key=self._key, error=str(e), error_type=type(e).__name__)
            raise PersistenceFailure(f"Could not load projects: {e}") from e

        if not raw:
            self._projects = []
            return 0

        try:
            records = json.loads(raw)
            projects = [Project.model_validate(record) for record in records]
        except (ValueError, TypeError) as e:
            logger.error("projects_parse_failed", key=self._key, error=str(e), error_type=type(e).__name__)
            raise PersistenceFailure(f"Stored projects are unreadable: {e}") from e

        self._projects = [self._repair_orders(p) for p in projects]
        return len(self._projects)

    @staticmethod
    def _repair_orders(project: Project) -> Project:
        """Renumber stored orders densely; gaps are only repaired in memory until the next write."""
        if ordering.is_dense(project.stages) and ordering.is_dense(project.subtasks, "stage_id"):
            return project
        logger.warning("project_orders_repaired", project_id=project.id)
        return project.model_copy(
            update={
                "stages": ordering.reindex(project.stages),
                "subtasks": ordering.reindex(project.subtasks, "stage_id"),
            }
        )

    async def _commit(self, projects: list[Project]) -> None:
        payload = json.dumps([p.to_json_dict() for p in projects])
        try:
            await self._blob_store.save(self._key, payload)
        except Exception as e:
            logger.error("projects_save_failed", key=self._key, error=str(e), error_type=type(e).__name__)
            raise PersistenceFailure(f"Could not save projects: {e}") from e
        self._projects = projects

    async def _commit_project(self, project: Project) -> None:
        await self._commit([project if p.id == project.id else p for p in self._projects])

    def _find(self, project_id: str) -> Project | None:
        return next((p for p in self._projects if p.id == project_id), None)

    # ------------------------------------------------------------------
    # Projects
    # ------------------------------------------------------------------

    def list_projects(self) -> list[Project]:
        return [p.model_copy(deep=True) for p in self._projects]

    def get_project(self, project_id: str) -> Project | None:
        """Pure read; None when the id is unknown."""
        project = self._find(project_id)
        return project.model_copy(deep=True) if project else None

    async def create_project(self, data: ProjectFields | Mapping[str, Any], apply_templates: bool = True) -> Project:
        """Create a project with a fresh id and timestamp.

        Args:
            data: Editable project fields (name required)
            apply_templates: Seed stages from the stage templates of ``project_types``

        Raises:
            ValidationError: If the name is blank or a field is malformed
        """
        if isinstance(data, BaseModel):
            fields = data.model_dump()
        else:
            fields = {k: v for k, v in _normalize(Project, data).items() if k not in _PROJECT_PROTECTED}
        validated = _validate(ProjectFields, fields)

        now = utcnow()
        stages = []
        if apply_templates:
            stages = [
                Stage(id=new_id(), name=name, order=index, created_at=now)
                for index, name in enumerate(stages_for_project_types(validated.project_types))
            ]
        project = Project(**validated.model_dump(), id=new_id(), created_at=now, stages=stages, subtasks=[])

        async with self._mutation():
            await self._commit([*self._projects, project])

        logger.info("project_created", project_id=project.id, templated_stages=len(stages))
        return project.model_copy(deep=True)

    async def update_project(self, project_id: str, updates: Mapping[str, Any]) -> Project | None:
        """Shallow-merge ``updates``; identity and structure fields are ignored."""
        async with self._mutation():
            project = self._find(project_id)
            if project is None:
                return None
            updated = _merge(project, updates, _PROJECT_PROTECTED)
            await self._commit_project(updated)
        return updated.model_copy(deep=True)

    async def delete_project(self, project_id: str) -> bool:
        """Remove a project with all its stages and subtasks."""
        async with self._mutation():
            if self._find(project_id) is None:
                return False
            await self._commit([p for p in self._projects if p.id != project_id])
        logger.info("project_deleted", project_id=project_id)
        return True

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    async def add_stage(self, project_id: str, name: str) -> Stage | None:
        """Append a stage at ``order = len(stages)``."""
        async with self._mutation():
            project = self._find(project_id)
            if project is None:
                return None
            stage = _validate(Stage, {"id": new_id(), "name": name, "order": ordering.next_order(project.stages)})
            await self._commit_project(project.model_copy(update={"stages": [*project.stages, stage]}))
        logger.info("stage_added", project_id=project_id, stage_id=stage.id, order=stage.order)
        return stage.model_copy()

    async def update_stage(self, project_id: str, stage_id: str, updates: Mapping[str, Any]) -> Stage | None:
        """Merge stage fields; ``order`` changes only through reorder/delete."""
        async with self._mutation():
            project = self._find(project_id)
            stage = project.get_stage(stage_id) if project else None
            if stage is None:
                return None
            updated = _merge(stage, updates, _STAGE_PROTECTED)
            stages = [updated if s.id == stage_id else s for s in project.stages]
            await self._commit_project(project.model_copy(update={"stages": stages}))
        return updated.model_copy()

    async def delete_stage(self, project_id: str, stage_id: str) -> bool:
        """Delete a stage, cascade to its subtasks and compact stage orders."""
        async with self._mutation():
            project = self._find(project_id)
            if project is None or project.get_stage(stage_id) is None:
                return False
            stages = ordering.remove_and_compact(project.stages, stage_id)
            subtasks = [st for st in project.subtasks if st.stage_id != stage_id]
            removed = len(project.subtasks) - len(subtasks)
            await self._commit_project(project.model_copy(update={"stages": stages, "subtasks": subtasks}))
        logger.info("stage_deleted", project_id=project_id, stage_id=stage_id, cascaded_subtasks=removed)
        return True

    async def reorder_stages(
        self, project_id: str, source_stage_id: str, target_stage_id: str | None
    ) -> list[Stage] | None:
        """Move a stage into the slot held by ``target_stage_id`` (or to the end).

        Implemented as remove-then-insert, so moving a stage down places it
        right after the target and moving it up places it right before.

        Returns:
            The project's stages in order, or None if any id is unknown
        """
        async with self._mutation():
            project = self._find(project_id)
            source = project.get_stage(source_stage_id) if project else None
            if source is None:
                return None
            if target_stage_id is None:
                target_order = len(project.stages) - 1
            else:
                target = project.get_stage(target_stage_id)
                if target is None:
                    return None
                target_order = target.order

            remaining = ordering.remove_and_compact(project.stages, source_stage_id)
            stages = ordering.insert_at_order(remaining, source, None, target_order)
            stages = ordering.sort_group(stages)
            await self._commit_project(project.model_copy(update={"stages": stages}))
        logger.info("stages_reordered", project_id=project_id, stage_id=source_stage_id, order=target_order)
        return [s.model_copy() for s in stages]

    async def set_project_stages(self, project_id: str, stages: Sequence[Stage | Mapping[str, Any]]) -> list[Stage] | None:
        """Bulk-replace the stage list.

        Raises:
            OrderingInvariantError: If orders are not dense (strict mode)
            ValidationError: If a subtask would reference a missing stage (strict mode)
        """
        validated = [_validate(Stage, _as_data(s)) for s in stages]
        async with self._mutation():
            project = self._find(project_id)
            if project is None:
                return None
            self._check_bulk(validated, None, project.subtasks)
            await self._commit_project(project.model_copy(update={"stages": validated}))
        return [s.model_copy() for s in validated]

    # ------------------------------------------------------------------
    # Subtasks
    # ------------------------------------------------------------------

    def _build_subtasks(self, project: Project, stage_id: str, cores: Sequence[SubtaskCore | Mapping[str, Any]]) -> list[Subtask]:
        start = ordering.next_order([st for st in project.subtasks if st.stage_id == stage_id])
        now = utcnow()
        built = []
        for offset, core in enumerate(cores):
            data = _normalize(SubtaskCore, _as_data(core))
            built.append(
                _validate(
                    Subtask,
                    {**data, "id": new_id(), "stage_id": stage_id, "order": start + offset, "created_at": now},
                )
            )
        return built

    async def add_subtask(self, project_id: str, stage_id: str, core: SubtaskCore | Mapping[str, Any]) -> Subtask | None:
        """Append a subtask to the end of ``stage_id``.

        Returns None if the project is unknown or the stage is not one of its stages.
        """
        created = await self.add_multiple_subtasks(project_id, stage_id, [core])
        return created[0] if created else None

    async def add_multiple_subtasks(
        self, project_id: str, stage_id: str, cores: Sequence[SubtaskCore | Mapping[str, Any]]
    ) -> list[Subtask] | None:
        """Append a batch to ``stage_id`` with contiguous orders in input order.

        Every item is validated before anything is stored.
        """
        async with self._mutation():
            project = self._find(project_id)
            if project is None or project.get_stage(stage_id) is None:
                return None
            created = self._build_subtasks(project, stage_id, cores)
            if created:
                await self._commit_project(project.model_copy(update={"subtasks": [*project.subtasks, *created]}))
        if created:
            logger.info("subtasks_added", project_id=project_id, stage_id=stage_id, count=len(created))
        return [st.model_copy() for st in created]

    async def update_subtask(self, project_id: str, subtask_id: str, updates: Mapping[str, Any]) -> Subtask | None:
        """Merge subtask fields. ``stage_id`` and ``order`` are ignored; use move_subtask."""
        async with self._mutation():
            project = self._find(project_id)
            subtask = project.get_subtask(subtask_id) if project else None
            if subtask is None:
                return None
            updated = _merge(subtask, updates, _SUBTASK_PROTECTED)
            subtasks = [updated if st.id == subtask_id else st for st in project.subtasks]
            await self._commit_project(project.model_copy(update={"subtasks": subtasks}))
        return updated.model_copy()

    async def move_subtask(
        self, project_id: str, subtask_id: str, target_stage_id: str, target_order: int
    ) -> Subtask | None:
        """Move a subtask to ``target_order`` within ``target_stage_id``.

        The subtask is removed from its source group (closing the gap), then
        inserted into the destination group as it looks after that removal;
        a same-stage move is therefore remove-then-insert into one compacted
        group. ``target_order`` is clamped to ``[0, len(destination)]``.

        Returns:
            The moved subtask, or None if the subtask or target stage is not
            part of the project (nothing is changed)
        """
        async with self._mutation():
            project = self._find(project_id)
            if project is None:
                return None
            subtask = project.get_subtask(subtask_id)
            if subtask is None or project.get_stage(target_stage_id) is None:
                logger.warning(
                    "move_subtask_rejected",
                    project_id=project_id,
                    subtask_id=subtask_id,
                    target_stage_id=target_stage_id,
                )
                return None

            remaining = ordering.remove_and_compact(project.subtasks, subtask_id, "stage_id")
            relocated = subtask.model_copy(update={"stage_id": target_stage_id})
            subtasks = _in_sequence(
                project.subtasks,
                ordering.insert_at_order(remaining, relocated, "stage_id", target_order),
            )
            moved = next(st for st in subtasks if st.id == subtask_id)
            await self._commit_project(project.model_copy(update={"subtasks": subtasks}))

        logger.info(
            "subtask_moved",
            project_id=project_id,
            subtask_id=subtask_id,
            from_stage=subtask.stage_id,
            to_stage=target_stage_id,
            order=moved.order,
        )
        return moved.model_copy()

    async def delete_subtask(self, project_id: str, subtask_id: str) -> bool:
        """Remove a subtask and compact its stage."""
        async with self._mutation():
            project = self._find(project_id)
            if project is None or project.get_subtask(subtask_id) is None:
                return False
            subtasks = ordering.remove_and_compact(project.subtasks, subtask_id, "stage_id")
            await self._commit_project(project.model_copy(update={"subtasks": subtasks}))
        return True

    async def clear_stage_subtasks(self, project_id: str, stage_id: str) -> int | None:
        """Delete every subtask of one stage; the stage itself stays.

        Returns:
            Number of subtasks removed, or None if the stage is unknown
        """
        async with self._mutation():
            project = self._find(project_id)
            if project is None or project.get_stage(stage_id) is None:
                return None
            subtasks = [st for st in project.subtasks if st.stage_id != stage_id]
            removed = len(project.subtasks) - len(subtasks)
            if removed:
                await self._commit_project(project.model_copy(update={"subtasks": subtasks}))
        logger.info("stage_cleared", project_id=project_id, stage_id=stage_id, removed=removed)
        return removed

    async def set_project_subtasks(
        self, project_id: str, subtasks: Sequence[Subtask | Mapping[str, Any]]
    ) -> list[Subtask] | None:
        """Bulk-replace the subtask list (used after AI reconciliation).

        Raises:
            OrderingInvariantError: If per-stage orders are not dense (strict mode)
            ValidationError: If a subtask references a missing stage (strict mode)
        """
        validated = [_validate(Subtask, _as_data(st)) for st in subtasks]
        async with self._mutation():
            project = self._find(project_id)
            if project is None:
                return None
            self._check_bulk(project.stages, "stage_id", validated)
            await self._commit_project(project.model_copy(update={"subtasks": validated}))
        logger.info("subtasks_replaced", project_id=project_id, count=len(validated))
        return [st.model_copy() for st in validated]

    async def apply_categorization(
        self, project_id: str, categorized: Mapping[str, Sequence[CategorizedSubtask]]
    ) -> list[Subtask] | None:
        """Merge an AI categorization into the project's current subtasks.

        Reading, reconciling and committing happen inside one mutation, so a
        subtask added while the planner was working is kept.

        Returns:
            The project's full subtask list after reconciliation, or None if
            the project is unknown
        """
        async with self._mutation():
            project = self._find(project_id)
            if project is None:
                return None
            merged = reconcile_categorization(project.stages, project.subtasks, categorized)
            self._check_bulk(project.stages, "stage_id", merged)
            await self._commit_project(project.model_copy(update={"subtasks": merged}))
        logger.info("categorization_applied", project_id=project_id, count=len(merged))
        return [st.model_copy() for st in merged]

    async def mark_all_subtasks_as_done(self, project_id: str) -> int | None:
        """Set every subtask of the project to Done without touching orders."""
        async with self._mutation():
            project = self._find(project_id)
            if project is None:
                return None
            subtasks = [st.model_copy(update={"status": SubtaskStatus.DONE}) for st in project.subtasks]
            await self._commit_project(project.model_copy(update={"subtasks": subtasks}))
        return len(subtasks)

    # ------------------------------------------------------------------
    # Invariant checks
    # ------------------------------------------------------------------

    def _check_bulk(self, stages: Sequence[Stage], group_key: str | None, subtasks: Sequence[Subtask]) -> None:
        """Verify a bulk payload keeps stage and subtask orders dense.

        ``group_key`` selects which collection was replaced: None for stages,
        "stage_id" for subtasks. Duplicate ids are always rejected; for gaps and
        orphans strict mode raises, otherwise a warning is logged.

        Raises:
            ValidationError: Duplicate ids (always), orphan subtasks (strict mode)
            OrderingInvariantError: Non-dense orders (strict mode)
        """
        replaced = stages if group_key is None else subtasks
        duplicates = sorted(item_id for item_id, count in Counter(item.id for item in replaced).items() if count > 1)
        if duplicates:
            raise ValidationError(f"Duplicate ids in bulk replacement: {duplicates}", field="id")

        try:
            ordering.assert_dense(replaced, group_key)
            stage_ids = {s.id for s in stages}
            orphans = sorted({st.stage_id for st in subtasks if st.stage_id not in stage_ids})
            if orphans:
                raise ValidationError(f"Subtasks reference unknown stages: {orphans}", field="stage_id")
        except (OrderingInvariantError, ValidationError) as e:
            if self._strict:
                raise
            logger.warning("bulk_replace_inconsistent", error=str(e), error_type=type(e).__name__)
