"""
Profile merging: fold extraction fragments into one profile, and export sessions into one history.

The two merges break scalar ties in opposite directions. Within one upload the first
fragment (earliest chunk) wins; across uploads the newest session wins because it is
the most current. Collections are always a case-insensitive union.
"""

from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

from ..models.core import (BASIC_FIELDS, GOAL_FIELDS, PREFERENCE_COLLECTIONS, PREFERENCE_SCALARS, TOP_LEVEL_COLLECTIONS,
                           WORK_FIELDS, ExportSession, HistorySummary, MergedHistory, Profile, ProfileSchemaError)
from ..utils.logging_config import get_logger

logger = get_logger(__name__)

# (group attribute or None for top level, scalar fields, collection fields)
_LAYOUT = (
    ('basic', BASIC_FIELDS, ()),
    ('preferences', PREFERENCE_SCALARS, PREFERENCE_COLLECTIONS),
    ('work', (), WORK_FIELDS),
    ('goals', (), GOAL_FIELDS),
    (None, (), TOP_LEVEL_COLLECTIONS),
)

TRACKED_GROUPS = ('basic', 'preferences', 'work', 'goals')


def _clean(value: Optional[str]) -> Optional[str]:
    if not isinstance(value, str):
        return None
    return value.strip() or None


def merge_collections(existing: Iterable[str], incoming: Iterable[str]) -> List[str]:
    """Union two lists: trimmed, blanks dropped, case-insensitive dedupe keeping first wording."""
    result = []
    seen = set()
    for item in list(existing) + list(incoming or []):
        text = _clean(item)
        if text is None:
            continue
        key = text.lower()
        if key not in seen:
            seen.add(key)
            result.append(text)
    return result


def _fold(target: Profile, source: Profile, overwrite: bool) -> List[str]:
    """Merge ``source`` into ``target`` in place; returns the groups that received a value."""
    touched = []
    for group_name, scalars, collections in _LAYOUT:
        target_group = getattr(target, group_name) if group_name else target
        source_group = getattr(source, group_name) if group_name else source
        contributed = False

        for name in scalars:
            incoming = _clean(getattr(source_group, name))
            if incoming is None:
                continue
            contributed = True
            if overwrite or _clean(getattr(target_group, name)) is None:
                setattr(target_group, name, incoming)

        for name in collections:
            incoming = getattr(source_group, name)
            if any(_clean(item) for item in incoming):
                contributed = True
            setattr(target_group, name, merge_collections(getattr(target_group, name), incoming))

        if contributed and group_name:
            touched.append(group_name)
    return touched


def _as_profile(fragment: Union[Profile, Dict[str, Any], None]) -> Optional[Profile]:
    if fragment is None or isinstance(fragment, Profile):
        return fragment
    try:
        return Profile.from_dict(fragment)
    except ProfileSchemaError as e:
        logger.warning(f'Skipping fragment that does not fit the profile schema: {e}')
        return None


def merge_profiles(fragments: Sequence[Union[Profile, Dict[str, Any], None]]) -> Profile:
    """Merge extraction fragments, in chunk order, into one canonical profile.

    Scalars keep the first non-blank value; collections are unioned. Raw dict fragments
    are validated first and skipped if they do not fit the schema.

    Args:
        fragments: Profiles or ``{"profile": ...}`` dicts in chunk sequence order

    Returns:
        Canonical profile (all-empty for empty input)
    """
    merged = Profile()
    for fragment in fragments or []:
        profile = _as_profile(fragment)
        if profile is None:
            continue
        _fold(merged, profile, overwrite=False)
    return merged


def merge_sessions(sessions: Sequence[ExportSession], selected_ids: Optional[Iterable[str]] = None) -> MergedHistory:
    """Merge export sessions recorded over time into one comprehensive profile.

    Sessions are sorted oldest first so that the newest non-blank scalar wins;
    collections are unioned.

    Args:
        sessions: Stored export sessions
        selected_ids: Optional ids restricting which sessions are merged

    Returns:
        MergedHistory with the profile and summary metadata
    """
    if selected_ids is not None:
        wanted = set(selected_ids)
        sessions = [s for s in sessions if s.id in wanted]

    if not sessions:
        return MergedHistory(profile=Profile(), summary=HistorySummary())

    ordered = sorted(sessions, key=lambda s: s.timestamp)
    merged = Profile()
    last_updated = {}

    for session in ordered:
        if session.profile is None:
            continue
        for group_name in _fold(merged, session.profile, overwrite=True):
            last_updated[group_name] = session.timestamp

    sources = []
    for session in ordered:
        if session.source not in sources:
            sources.append(session.source)

    summary = HistorySummary(export_count=len(ordered),
                             sources=sources,
                             oldest_export=ordered[0].timestamp,
                             newest_export=ordered[-1].timestamp,
                             last_updated=last_updated)

    logger.debug(f'Merged {len(ordered)} export sessions from {sources}')
    return MergedHistory(profile=merged, summary=summary)


def get_history_stats(sessions: Sequence[ExportSession]) -> Dict[str, Any]:
    """Counts per source and the time span of stored export sessions."""
    if not sessions:
        return {'total_exports': 0, 'sources': {}, 'oldest_export': None, 'newest_export': None}

    sources: Dict[str, int] = {}
    for session in sessions:
        sources[session.source] = sources.get(session.source, 0) + 1

    return {
        'total_exports': len(sessions),
        'sources': sources,
        'oldest_export': min(s.timestamp for s in sessions),
        'newest_export': max(s.timestamp for s in sessions),
    }
