import copy
import logging
import threading
import time
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set, Tuple

from pydantic import ValidationError

from core.config_loader import ConfigLoader, config_loader
from core.exceptions import (
    DuplicateSourceError,
    MappingNotFoundError,
    MappingValidationError,
    UnresolvableSourceError,
)
from core.models.sensor_enum import SensorType
from core.models.sensor_mapping import BatchError, BatchResult, SensorMapping, SensorMappingDefinition
from core.processing.path_resolver import is_numeric, parse_source, resolve

logger = logging.getLogger(__name__)

Groups = Dict[SensorType, List[SensorMapping]]


def _empty_groups() -> Groups:
    return {sensor_type: [] for sensor_type in SensorType}


def _reindex(group: List[SensorMapping]):
    for position, mapping in enumerate(group):
        mapping.index = position


def _max_numeric_id(ids: Iterable[str]) -> int:
    return max((int(mapping_id) for mapping_id in ids if mapping_id.isdecimal()), default=0)


def _source_key(source: str) -> Tuple[str, ...]:
    return tuple(parse_source(source))


def _format_validation_error(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        loc = ".".join(str(part) for part in item.get("loc", ()))
        msg = item.get("msg", "invalid value")
        parts.append(f"{loc}: {msg}" if loc else msg)
    return "; ".join(parts)


def _stored_index(entry: Any, default: int) -> int:
    index = entry.get("index") if isinstance(entry, dict) else None
    if isinstance(index, int) and not isinstance(index, bool):
        return index
    return default


def _payload_name(payload: Any) -> Optional[str]:
    if isinstance(payload, Mapping):
        name = payload.get("name")
        if isinstance(name, str):
            return name
    return None


def _strip_mapped(node: Mapping[str, Any], prefix: Tuple[str, ...], mapped: Set[Tuple[str, ...]]) -> Optional[Dict[str, Any]]:
    """
    Copy a raw subtree without its mapped leaves.
    Returns None when no numeric leaf is left, so the caller prunes the node
    together with its non-numeric metadata.
    """
    result: Dict[str, Any] = {}
    has_leaf = False
    for key, value in node.items():
        path = prefix + (key,)
        if isinstance(value, Mapping):
            child = _strip_mapped(value, path, mapped)
            if child is not None:
                result[key] = child
                has_leaf = True
        elif is_numeric(value):
            if path not in mapped:
                result[key] = value
                has_leaf = True
        else:
            result[key] = copy.deepcopy(value)
    return result if has_leaf else None


class MappingStore:
    """
    Authoritative, durable, grouped collection of sensor mappings.

    Every mutation runs under one lock: it works on a copy of the groups,
    persists the copy, and only then swaps it in. A failed validation or a
    failed write leaves both the in-memory and on-disk state untouched.
    """

    def __init__(self, loader: ConfigLoader):
        self.loader = loader
        self._groups: Groups = _empty_groups()
        self._lock = threading.RLock()
        self._last_id = 0

    # ------------------------------------------------------------------
    # Loading and reads
    # ------------------------------------------------------------------

    def load(self):
        """Load mappings from disk, normalizing group placement and indices."""
        document = self.loader.load()
        groups = _empty_groups()
        seen_ids: Set[str] = set()
        seen_sources: Set[Tuple[str, ...]] = set()

        for key, members in document.items():
            try:
                SensorType(key)
            except ValueError:
                logger.warning(f"Ignoring unknown sensor group '{key}' in configuration")
                continue
            if not isinstance(members, list):
                logger.warning(f"Ignoring sensor group '{key}': expected a list")
                continue

            ordered = sorted(enumerate(members), key=lambda item: (_stored_index(item[1], len(members)), item[0]))
            for position, entry in ordered:
                try:
                    # Position comes from the sort above; reindexed below
                    mapping = SensorMapping.model_validate(dict(entry, index=0) if isinstance(entry, dict) else entry)
                except ValidationError as e:
                    logger.warning(f"Skipping malformed mapping {key}[{position}]: {_format_validation_error(e)}")
                    continue
                source_key = _source_key(mapping.source)
                if mapping.id in seen_ids or source_key in seen_sources:
                    logger.warning(f"Skipping duplicate mapping {mapping.id} ({mapping.source})")
                    continue
                seen_ids.add(mapping.id)
                seen_sources.add(source_key)
                groups[mapping.type].append(mapping)

        for group in groups.values():
            _reindex(group)

        with self._lock:
            self._groups = groups
            self._last_id = _max_numeric_id(seen_ids)
        logger.info(f"Loaded {len(seen_ids)} sensor mappings from {self.loader.config_path}")

    def list_grouped(self) -> Dict[str, List[SensorMapping]]:
        """Snapshot of every group in index order, keyed by type name."""
        with self._lock:
            return {
                sensor_type.value: [mapping.model_copy(deep=True) for mapping in group]
                for sensor_type, group in self._groups.items()
            }

    def get(self, mapping_id: str) -> SensorMapping:
        with self._lock:
            sensor_type, position = self._find(self._groups, mapping_id)
            return self._groups[sensor_type][position].model_copy(deep=True)

    def list_unmapped_against(self, raw_tree: Mapping[str, Any]) -> Dict[str, Any]:
        """Deep copy of the raw tree without mapped leaves; emptied nodes are pruned."""
        with self._lock:
            mapped = {_source_key(mapping.source) for group in self._groups.values() for mapping in group}
        return _strip_mapped(raw_tree, (), mapped) or {}

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def create(self, payload: Mapping[str, Any], raw_tree: Mapping[str, Any]) -> SensorMapping:
        """Validate a definition and append it to the end of its group."""
        with self._lock:
            groups = self._copy_groups()
            mapping = self._build(groups, payload, raw_tree)
            self._commit(groups)
            logger.info(f"Created sensor mapping {mapping.id} ({mapping.type.value}[{mapping.index}] <- {mapping.source})")
            return mapping.model_copy(deep=True)

    def create_batch(self, payloads: List[Mapping[str, Any]], raw_tree: Mapping[str, Any]) -> BatchResult:
        """
        Create each definition independently, in order.
        Failures are collected per item; successes are persisted together.
        """
        if not isinstance(payloads, list) or not payloads:
            raise MappingValidationError("Expected a non-empty list of sensor definitions")

        with self._lock:
            groups = self._copy_groups()
            result = BatchResult()
            for position, payload in enumerate(payloads):
                try:
                    mapping = self._build(groups, payload, raw_tree)
                except (MappingValidationError, UnresolvableSourceError, DuplicateSourceError) as e:
                    result.errors.append(BatchError(index=position, name=_payload_name(payload), error=str(e)))
                    continue
                result.created.append(mapping.model_copy(deep=True))

            if result.created:
                self._commit(groups)
            logger.info(f"Batch create: {len(result.created)} created, {len(result.errors)} failed")
            return result

    def update(self, mapping_id: str, patch: Mapping[str, Any], raw_tree: Mapping[str, Any]) -> SensorMapping:
        """
        Apply the provided fields to an existing mapping.

        A type change moves the mapping to the end of the new group unless an
        explicit ``index`` is given, in which case it is inserted there. An
        ``index`` without a type change reorders the mapping within its group.
        """
        if not isinstance(patch, Mapping):
            raise MappingValidationError("Expected an object with the fields to update")
        new_index = patch.get("index")
        if new_index is not None and (isinstance(new_index, bool) or not isinstance(new_index, int) or new_index < 0):
            raise MappingValidationError("index: must be a non-negative integer")

        with self._lock:
            groups = self._copy_groups()
            old_type, old_position = self._find(groups, mapping_id)
            current = groups[old_type][old_position]

            merged = current.model_dump(exclude={"id", "index"})
            merged.update({key: value for key, value in patch.items() if key not in ("id", "index")})
            definition = self._parse_definition(merged)

            if _source_key(definition.source) != _source_key(current.source):
                self._check_source(groups, definition.source, raw_tree, exclude_id=mapping_id)

            groups[old_type].pop(old_position)
            _reindex(groups[old_type])

            updated = SensorMapping(**definition.model_dump(), id=current.id, index=0)
            target = groups[updated.type]
            if new_index is not None:
                target.insert(min(new_index, len(target)), updated)
            elif updated.type == old_type:
                target.insert(old_position, updated)
            else:
                target.append(updated)
            _reindex(target)

            self._commit(groups)
            logger.info(f"Updated sensor mapping {mapping_id} ({updated.type.value}[{updated.index}])")
            return updated.model_copy(deep=True)

    def delete(self, mapping_id: str) -> SensorMapping:
        with self._lock:
            groups = self._copy_groups()
            sensor_type, position = self._find(groups, mapping_id)
            removed = groups[sensor_type].pop(position)
            _reindex(groups[sensor_type])
            self._commit(groups)
            logger.info(f"Deleted sensor mapping {mapping_id} from {sensor_type.value}")
            return removed

    def replace_all(self, grouped: Mapping[str, Any], raw_tree: Mapping[str, Any]) -> Dict[str, List[SensorMapping]]:
        """
        Replace the whole store with a grouped snapshot, all or nothing.
        Supplied ids are kept, missing ones generated; group order is array order.
        """
        if not isinstance(grouped, Mapping):
            raise MappingValidationError("Expected an object keyed by sensor type")

        entries: List[Tuple[str, Dict[str, Any]]] = []
        reserved_ids: Set[str] = set()
        for key, members in grouped.items():
            try:
                group_type = SensorType(key)
            except ValueError:
                raise MappingValidationError(f"Unknown sensor group '{key}'") from None
            if not isinstance(members, list):
                raise MappingValidationError(f"{key}: expected a list of sensor definitions")

            for position, payload in enumerate(members):
                location = f"{key}[{position}]"
                if not isinstance(payload, Mapping):
                    raise MappingValidationError(f"{location}: expected an object")
                payload = dict(payload)
                declared = payload.setdefault("type", group_type.value)
                if declared != group_type.value:
                    raise MappingValidationError(f"{location}: type '{declared}' does not match group '{key}'")

                mapping_id = payload.get("id")
                if mapping_id is not None:
                    if not isinstance(mapping_id, str) or not mapping_id:
                        raise MappingValidationError(f"{location}: id must be a non-empty string")
                    if mapping_id in reserved_ids:
                        raise MappingValidationError(f"{location}: duplicate id '{mapping_id}'")
                    reserved_ids.add(mapping_id)
                entries.append((location, payload))

        with self._lock:
            groups = _empty_groups()
            for location, payload in entries:
                self._build(groups, payload, raw_tree, mapping_id=payload.get("id"), reserved_ids=reserved_ids, location=location)
            self._commit(groups)
            self._last_id = max(self._last_id, _max_numeric_id(reserved_ids))
            logger.info(f"Replaced sensor configuration with {len(entries)} mappings")
            return self.list_grouped()

    # ------------------------------------------------------------------
    # Internals (callers hold the lock)
    # ------------------------------------------------------------------

    def _copy_groups(self) -> Groups:
        return {
            sensor_type: [mapping.model_copy(deep=True) for mapping in group]
            for sensor_type, group in self._groups.items()
        }

    @staticmethod
    def _find(groups: Groups, mapping_id: str) -> Tuple[SensorType, int]:
        for sensor_type, group in groups.items():
            for position, mapping in enumerate(group):
                if mapping.id == mapping_id:
                    return sensor_type, position
        raise MappingNotFoundError(mapping_id)

    @staticmethod
    def _parse_definition(payload: Any, location: str = "") -> SensorMappingDefinition:
        if not isinstance(payload, Mapping):
            message = "expected an object"
            raise MappingValidationError(f"{location}: {message}" if location else message)
        try:
            return SensorMappingDefinition.model_validate(dict(payload))
        except ValidationError as e:
            message = _format_validation_error(e)
            raise MappingValidationError(f"{location}: {message}" if location else message) from e

    @staticmethod
    def _check_source(groups: Groups, source: str, raw_tree: Mapping[str, Any], exclude_id: Optional[str] = None, location: str = ""):
        if resolve(raw_tree, source) is None:
            raise UnresolvableSourceError(source, location=location)
        key = _source_key(source)
        for group in groups.values():
            for mapping in group:
                if mapping.id != exclude_id and _source_key(mapping.source) == key:
                    raise DuplicateSourceError(source, mapping.id, location=location)

    def _next_id(self, groups: Groups, reserved_ids: Set[str]) -> str:
        """Millisecond timestamp, kept strictly increasing and clear of existing ids."""
        existing = {mapping.id for group in groups.values() for mapping in group} | reserved_ids
        candidate = max(int(time.time() * 1000), self._last_id + 1)
        while str(candidate) in existing:
            candidate += 1
        self._last_id = candidate
        return str(candidate)

    def _build(self, groups: Groups, payload: Any, raw_tree: Mapping[str, Any], mapping_id: Optional[str] = None,
               reserved_ids: Optional[Set[str]] = None, location: str = "") -> SensorMapping:
        """Validate a definition against the working groups and append it. Nothing is added on failure."""
        definition = self._parse_definition(payload, location)
        self._check_source(groups, definition.source, raw_tree, location=location)
        if mapping_id is None:
            mapping_id = self._next_id(groups, reserved_ids or set())
        group = groups[definition.type]
        mapping = SensorMapping(**definition.model_dump(), id=mapping_id, index=len(group))
        group.append(mapping)
        return mapping

    def _commit(self, groups: Groups):
        document = {
            sensor_type.value: [mapping.model_dump(mode="json") for mapping in group]
            for sensor_type, group in groups.items()
        }
        self.loader.save(document)
        self._groups = groups


# Global instance
mapping_store = MappingStore(config_loader)
