#!/usr/bin/env python3
"""
KUBEMEND STRATEGIC MERGE - The Delta Surgeon
--------------------------------------------
Computes and applies strategic merge patches over plain JSON-style
documents. Per-field behaviour comes from a SchemaNode:

    maps                  -> always merged key by key
    lists, keyed merge    -> elements matched on their merge key
    lists, primitive merge-> treated as a set (e.g. metadata.finalizers)
    everything else       -> replaced as a whole

Patch directives understood on both sides:
    null                              delete the field
    {"$patch": "delete", key: v}      drop a keyed list element
    {"$patch": "replace"}             replace a map/list instead of merging
    "$setElementOrder/<field>"        desired ordering of a merge list
    "$deleteFromPrimitiveList/<field>" values to drop from a primitive list

Author: KubeMend Team
Date: 2026-01-16
"""

import copy
import json
import logging
from typing import Any, Dict, List, Optional

from kubemend.core.errors import SchemaError, SerializationError
from kubemend.patching.catalog import MERGE, MergeStrategyCatalog, SchemaNode

logger = logging.getLogger("kubemend.patch")

PATCH_DIRECTIVE = "$patch"
DELETE = "delete"
REPLACE = "replace"
SET_ELEMENT_ORDER = "$setElementOrder/"
DELETE_FROM_PRIMITIVE = "$deleteFromPrimitiveList/"

STRATEGIC_PATCH = "strategic"
JSON_MERGE_PATCH = "merge"


# --- DOCUMENT HELPERS ---

def to_document(obj: Any, label: str = "object") -> Dict[str, Any]:
    """
    Canonical document form: whatever serializes to a JSON object.
    Also flattens ruamel CommentedMaps and similar mapping types.
    """
    try:
        doc = json.loads(json.dumps(obj))
    except (TypeError, ValueError) as e:
        raise SerializationError(f"unable to serialize {label}: {e}") from e
    if not isinstance(doc, dict):
        raise SerializationError(f"unable to serialize {label}: expected a mapping, got {type(obj).__name__}")
    return doc


def is_empty_patch(patch: Optional[Dict[str, Any]]) -> bool:
    """A patch is empty when it serializes to '{}'."""
    if not patch:
        return True
    return json.dumps(patch, sort_keys=True, separators=(",", ":")) == "{}"


def _values_equal(a: Any, b: Any) -> bool:
    # bool is an int subclass in Python; JSON keeps them distinct
    if isinstance(a, bool) or isinstance(b, bool):
        return type(a) is type(b) and a == b
    if isinstance(a, (int, float)) and isinstance(b, (int, float)):
        return a == b
    if isinstance(a, dict) and isinstance(b, dict):
        return a.keys() == b.keys() and all(_values_equal(a[k], b[k]) for k in a)
    if isinstance(a, list) and isinstance(b, list):
        return len(a) == len(b) and all(_values_equal(x, y) for x, y in zip(a, b))
    return type(a) is type(b) and a == b


def _contains(values: List[Any], item: Any) -> bool:
    return any(_values_equal(v, item) for v in values)


def _strip_directives(value: Any) -> Any:
    """Removes patch-only keys from a value that is being inserted whole."""
    if isinstance(value, dict):
        return {
            k: _strip_directives(v) for k, v in value.items()
            if not k.startswith("$")
        }
    if isinstance(value, list):
        return [_strip_directives(v) for v in value]
    return copy.deepcopy(value)


def _merge_key_of(item: Any, schema: SchemaNode, field: str) -> Any:
    key = schema.merge_key
    if not isinstance(item, dict) or key not in item:
        raise SchemaError(
            f"element of list '{field}' does not contain declared merge key '{key}'"
        )
    return item[key]


# --- DIFF (two-way) ---

def _diff_maps(old: Dict[str, Any], new: Dict[str, Any], schema: SchemaNode,
               ignore_deletions: bool, ignore_changes: bool) -> Dict[str, Any]:
    patch: Dict[str, Any] = {}

    if not ignore_deletions:
        for key in old:
            if key not in new:
                patch[key] = None

    for key, new_value in new.items():
        if key not in old:
            # An explicit null for an absent field is a no-op, not drift
            if new_value is None or ignore_changes:
                continue
            patch[key] = copy.deepcopy(new_value)
            continue

        old_value = old[key]
        field = schema.field(key)

        if isinstance(old_value, dict) and isinstance(new_value, dict):
            sub = _diff_maps(old_value, new_value, field, ignore_deletions, ignore_changes)
            if sub:
                patch[key] = sub
        elif isinstance(old_value, list) and isinstance(new_value, list):
            _diff_lists(key, old_value, new_value, field, patch, ignore_deletions, ignore_changes)
        elif not _values_equal(old_value, new_value) and not ignore_changes:
            patch[key] = copy.deepcopy(new_value)

    return patch


def _diff_lists(key: str, old: List[Any], new: List[Any], field: SchemaNode,
                patch: Dict[str, Any], ignore_deletions: bool, ignore_changes: bool):
    if field.is_keyed_merge:
        entries = _diff_keyed_list(key, old, new, field, ignore_deletions, ignore_changes)
        if entries:
            patch[key] = entries
            patch[SET_ELEMENT_ORDER + key] = [
                {field.merge_key: _merge_key_of(item, field, key)} for item in new
            ]
        return

    if field.is_primitive_merge:
        added = [] if ignore_changes else [v for v in new if not _contains(old, v)]
        removed = [] if ignore_deletions else [v for v in old if not _contains(new, v)]
        if added:
            patch[key] = copy.deepcopy(added)
        if removed:
            patch[DELETE_FROM_PRIMITIVE + key] = copy.deepcopy(removed)
        if added or removed:
            patch[SET_ELEMENT_ORDER + key] = copy.deepcopy(new)
        return

    if not ignore_changes and not _values_equal(old, new):
        patch[key] = copy.deepcopy(new)


def _diff_keyed_list(key: str, old: List[Any], new: List[Any], field: SchemaNode,
                     ignore_deletions: bool, ignore_changes: bool) -> List[Dict[str, Any]]:
    merge_key = field.merge_key
    item_schema = field.items()
    old_index = {}
    for item in old:
        old_index.setdefault(_merge_key_of(item, field, key), item)

    entries: List[Dict[str, Any]] = []
    new_keys = []
    for item in new:
        item_key = _merge_key_of(item, field, key)
        new_keys.append(item_key)
        if item_key in old_index:
            sub = _diff_maps(old_index[item_key], item, item_schema, ignore_deletions, ignore_changes)
            if sub:
                sub[merge_key] = item_key
                entries.append(sub)
        elif not ignore_changes:
            entries.append(copy.deepcopy(item))

    if not ignore_deletions:
        for item_key in old_index:
            if item_key not in new_keys:
                entries.append({merge_key: item_key, PATCH_DIRECTIVE: DELETE})

    return entries


# --- PATCH MERGE ---

def _merge_patches(left: Dict[str, Any], right: Dict[str, Any], schema: SchemaNode) -> Dict[str, Any]:
    """Folds two patches computed against the same target; right wins on conflict."""
    merged = copy.deepcopy(left)
    for key, value in right.items():
        if key not in merged:
            merged[key] = copy.deepcopy(value)
            continue
        existing = merged[key]
        field = schema.field(key)
        if isinstance(existing, dict) and isinstance(value, dict):
            merged[key] = _merge_patches(existing, value, field)
        elif isinstance(existing, list) and isinstance(value, list) and field.is_keyed_merge:
            merged[key] = _merge_keyed_entries(existing, value, field)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def _merge_keyed_entries(left: List[Any], right: List[Any], field: SchemaNode) -> List[Any]:
    merge_key = field.merge_key
    result = copy.deepcopy(left)
    positions = {entry.get(merge_key): i for i, entry in enumerate(result) if isinstance(entry, dict)}
    for entry in right:
        entry_key = entry.get(merge_key) if isinstance(entry, dict) else None
        if entry_key in positions:
            idx = positions[entry_key]
            result[idx] = _merge_patches(result[idx], entry, field.items())
        else:
            positions[entry_key] = len(result)
            result.append(copy.deepcopy(entry))
    return result


def create_three_way_merge_patch(original: Dict[str, Any], modified: Dict[str, Any],
                                 current: Dict[str, Any], schema: SchemaNode) -> Dict[str, Any]:
    """
    Patch that takes `current` to `modified` while only deleting what was
    removed between `original` and `modified`. Fields only the live side
    carries are left alone.
    """
    delta = _diff_maps(current, modified, schema, ignore_deletions=True, ignore_changes=False)
    deletions = _diff_maps(original, modified, schema, ignore_deletions=False, ignore_changes=True)
    return _merge_patches(deletions, delta, schema)


# --- APPLY ---

def apply_strategic_patch(doc: Dict[str, Any], patch: Dict[str, Any], schema: SchemaNode) -> Dict[str, Any]:
    """Returns a new document with `patch` applied; the input is not mutated."""
    return _apply_map(doc, patch, schema)


def _apply_map(original: Dict[str, Any], patch: Dict[str, Any], schema: SchemaNode) -> Dict[str, Any]:
    directive = patch.get(PATCH_DIRECTIVE)
    if directive == REPLACE:
        return _strip_directives(patch)
    if directive == DELETE:
        return {}

    result = copy.deepcopy(original)
    orders: Dict[str, List[Any]] = {}
    removals: Dict[str, List[Any]] = {}

    for key, value in patch.items():
        if key == PATCH_DIRECTIVE:
            continue
        if key.startswith(SET_ELEMENT_ORDER):
            orders[key[len(SET_ELEMENT_ORDER):]] = value
            continue
        if key.startswith(DELETE_FROM_PRIMITIVE):
            removals[key[len(DELETE_FROM_PRIMITIVE):]] = value
            continue
        if value is None:
            result.pop(key, None)
            continue

        field = schema.field(key)
        current = result.get(key)
        if isinstance(value, dict):
            result[key] = _apply_map(current if isinstance(current, dict) else {}, value, field)
        elif isinstance(value, list) and field.strategy == MERGE:
            result[key] = _apply_list(current if isinstance(current, list) else [], value, field, key)
        else:
            result[key] = _strip_directives(value)

    for key, values in removals.items():
        if isinstance(result.get(key), list):
            result[key] = [v for v in result[key] if not _contains(values, v)]

    for key, order in orders.items():
        if isinstance(result.get(key), list):
            result[key] = _reorder(result[key], order, schema.field(key))

    return result


def _apply_list(current: List[Any], entries: List[Any], field: SchemaNode, name: str) -> List[Any]:
    if any(isinstance(e, dict) and e.get(PATCH_DIRECTIVE) == REPLACE for e in entries):
        return [_strip_directives(e) for e in entries
                if not (isinstance(e, dict) and e.get(PATCH_DIRECTIVE) == REPLACE)]

    if not field.is_keyed_merge:
        return copy.deepcopy(current) + [copy.deepcopy(v) for v in entries if not _contains(current, v)]

    merge_key = field.merge_key
    result = copy.deepcopy(current)
    for entry in entries:
        entry_key = _merge_key_of(entry, field, name)
        idx = next((i for i, item in enumerate(result)
                    if isinstance(item, dict) and item.get(merge_key) == entry_key), None)
        if entry.get(PATCH_DIRECTIVE) == DELETE:
            result = [item for item in result
                      if not (isinstance(item, dict) and item.get(merge_key) == entry_key)]
        elif idx is None:
            result.append(_strip_directives(entry))
        else:
            result[idx] = _apply_map(result[idx], entry, field.items())
    return result


def _reorder(items: List[Any], order: List[Any], field: SchemaNode) -> List[Any]:
    """Sorts items by `order`; items the order does not mention keep their place at the end."""
    keyed = field.is_keyed_merge
    if keyed:
        wanted = [o.get(field.merge_key) for o in order if isinstance(o, dict)]
    else:
        wanted = list(order)

    def rank(indexed):
        idx, item = indexed
        if keyed:
            pos = item.get(field.merge_key) if isinstance(item, dict) else None
        else:
            pos = item
        for i, w in enumerate(wanted):
            if _values_equal(w, pos):
                return (0, i)
        return (1, idx)

    return [item for _, item in sorted(enumerate(items), key=rank)]


def apply_merge_patch(doc: Any, patch: Any) -> Any:
    """RFC 7386 JSON merge patch."""
    if not isinstance(patch, dict):
        return copy.deepcopy(patch)
    result = copy.deepcopy(doc) if isinstance(doc, dict) else {}
    for key, value in patch.items():
        if value is None:
            result.pop(key, None)
        else:
            result[key] = apply_merge_patch(result.get(key), value)
    return result


# --- GENERATOR ---

class PatchGenerator:
    """
    Computes the drift-correcting patch for one object.

    The desired document is used as both the 'original' and 'modified'
    side of the three-way merge with the live object as 'current', so the
    patch is the full delta needed to drive live state to desired state
    and never removes fields the manifest does not mention.
    """

    def __init__(self, catalog: MergeStrategyCatalog):
        self.catalog = catalog

    def _schema(self, desired: Dict[str, Any]) -> SchemaNode:
        return self.catalog.schema_for(str(desired.get("apiVersion", "")), str(desired.get("kind", "")))

    def patch_type(self, desired: Dict[str, Any]) -> str:
        """Unregistered types (CRDs) only accept JSON merge patches."""
        if self.catalog.is_registered(str(desired.get("apiVersion", "")), str(desired.get("kind", ""))):
            return STRATEGIC_PATCH
        return JSON_MERGE_PATCH

    def generate(self, live: Any, desired: Any) -> Dict[str, Any]:
        live_doc = to_document(live, "live object")
        desired_doc = to_document(desired, "desired object")
        schema = self._schema(desired_doc)
        patch = create_three_way_merge_patch(desired_doc, desired_doc, live_doc, schema)
        logger.debug(f"Computed patch {json.dumps(patch, sort_keys=True)}")
        return patch
