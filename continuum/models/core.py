"""
Core data models for uploads, chunks, identity profiles and export history.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

# Leaf fields per group: (scalar fields, collection fields)
BASIC_FIELDS = ('name', 'age_range', 'location')
PREFERENCE_SCALARS = ('tone',)
PREFERENCE_COLLECTIONS = ('likes', 'dislikes')
WORK_FIELDS = ('roles', 'industries', 'current_focus')
GOAL_FIELDS = ('short_term', 'long_term')
TOP_LEVEL_COLLECTIONS = ('constraints', 'skills', 'communication_style')


class ProfileSchemaError(ValueError):
    """Raised when an untrusted payload does not fit the profile schema."""
    pass


@dataclass(frozen=True)
class UploadedFile:
    """One file from an upload batch (a loose file or a whole archive)."""
    name: str
    content: bytes
    content_type: Optional[str] = None

    @property
    def extension(self) -> str:
        return Path(self.name).suffix.lower()

    @classmethod
    def from_path(cls, path: Union[str, Path]) -> 'UploadedFile':
        path = Path(path)
        return cls(name=path.name, content=path.read_bytes())


@dataclass
class UnifiedHistory:
    """Transcript for one upload batch plus where it came from."""
    provider: str
    source_label: str
    raw_text: str
    has_content: bool


@dataclass
class Chunk:
    """A bounded slice of a transcript prepared for one extraction call."""
    text: str
    index: int  # 0-based position in chunk sequence
    total: int


@dataclass
class ChunkPlan:
    """Chunks for one transcript plus how much of it they cover."""
    chunks: List[Chunk]
    total_chars: int
    consumed_chars: int

    @property
    def truncated(self) -> bool:
        """True when the chunk cap dropped the tail of the transcript."""
        return self.consumed_chars < self.total_chars


@dataclass
class BasicInfo:
    name: Optional[str] = None
    age_range: Optional[str] = None
    location: Optional[str] = None


@dataclass
class Preferences:
    likes: List[str] = field(default_factory=list)
    dislikes: List[str] = field(default_factory=list)
    tone: Optional[str] = None


@dataclass
class WorkContext:
    roles: List[str] = field(default_factory=list)
    industries: List[str] = field(default_factory=list)
    current_focus: List[str] = field(default_factory=list)


@dataclass
class Goals:
    short_term: List[str] = field(default_factory=list)
    long_term: List[str] = field(default_factory=list)


@dataclass
class Profile:
    """Identity profile; the same shape serves fragments and canonical profiles.

    Serialized form is ``{"profile": {...}}`` as requested from and returned by the
    completion service, so fragments and stored profiles share one codec.
    """
    basic: BasicInfo = field(default_factory=BasicInfo)
    preferences: Preferences = field(default_factory=Preferences)
    work: WorkContext = field(default_factory=WorkContext)
    goals: Goals = field(default_factory=Goals)
    constraints: List[str] = field(default_factory=list)
    skills: List[str] = field(default_factory=list)
    communication_style: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'profile': {
                'basic': {name: getattr(self.basic, name) for name in BASIC_FIELDS},
                'preferences': {
                    'likes': list(self.preferences.likes),
                    'dislikes': list(self.preferences.dislikes),
                    'tone': self.preferences.tone,
                },
                'work': {name: list(getattr(self.work, name)) for name in WORK_FIELDS},
                'goals': {name: list(getattr(self.goals, name)) for name in GOAL_FIELDS},
                'constraints': list(self.constraints),
                'skills': list(self.skills),
                'communication_style': list(self.communication_style),
            }
        }

    def is_empty(self) -> bool:
        """True when no field carries any value."""
        return self == Profile()

    @classmethod
    def from_dict(cls, data: Any) -> 'Profile':
        """Validate an untrusted payload and build a Profile from it.

        Missing groups and fields default to empty. Collection entries are trimmed and
        blanks dropped; numbers are accepted as text. Anything else that does not fit
        the schema raises ProfileSchemaError.
        """
        if not isinstance(data, dict):
            raise ProfileSchemaError(f'Expected a JSON object, got {type(data).__name__}')

        body = data.get('profile')
        if not isinstance(body, dict):
            raise ProfileSchemaError("Missing 'profile' object")

        basic = _group(body, 'basic')
        preferences = _group(body, 'preferences')
        work = _group(body, 'work')
        goals = _group(body, 'goals')

        return cls(basic=BasicInfo(**{name: _scalar(basic, name, 'basic') for name in BASIC_FIELDS}),
                   preferences=Preferences(likes=_collection(preferences, 'likes', 'preferences'),
                                           dislikes=_collection(preferences, 'dislikes', 'preferences'),
                                           tone=_scalar(preferences, 'tone', 'preferences')),
                   work=WorkContext(**{name: _collection(work, name, 'work') for name in WORK_FIELDS}),
                   goals=Goals(**{name: _collection(goals, name, 'goals') for name in GOAL_FIELDS}),
                   **{name: _collection(body, name, 'profile') for name in TOP_LEVEL_COLLECTIONS})


def _group(body: Dict[str, Any], name: str) -> Dict[str, Any]:
    value = body.get(name)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ProfileSchemaError(f"'profile.{name}' must be an object")
    return value


def _as_text(value: Any, path: str) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, bool):
        raise ProfileSchemaError(f"'{path}' must be text, got a boolean")
    if isinstance(value, (int, float)):
        value = str(value)
    if not isinstance(value, str):
        raise ProfileSchemaError(f"'{path}' must be text, got {type(value).__name__}")
    return value.strip() or None


def _scalar(group: Dict[str, Any], name: str, group_name: str) -> Optional[str]:
    return _as_text(group.get(name), f'{group_name}.{name}')


def _collection(group: Dict[str, Any], name: str, group_name: str) -> List[str]:
    value = group.get(name)
    if value is None:
        return []
    if not isinstance(value, list):
        raise ProfileSchemaError(f"'{group_name}.{name}' must be a list")

    items = []
    for item in value:
        text = _as_text(item, f'{group_name}.{name}[]')
        if text:
            items.append(text)
    return items


@dataclass
class ExportSession:
    """One upload's canonical profile plus where and when it came from."""
    id: str
    timestamp: int  # Unix seconds
    source: str  # provider tag
    profile: Profile
    profile_text: str = ''
    file_name: Optional[str] = None


@dataclass
class HistorySummary:
    """Metadata about the sessions folded into a merged history."""
    export_count: int = 0
    sources: List[str] = field(default_factory=list)
    oldest_export: Optional[int] = None
    newest_export: Optional[int] = None
    last_updated: Dict[str, int] = field(default_factory=dict)  # group name -> session timestamp


@dataclass
class MergedHistory:
    profile: Profile
    summary: HistorySummary


@dataclass
class ExtractionResult:
    """Canonical profile for one transcript plus coverage counts."""
    profile: Profile
    chunk_count: int
    used_chunks: int  # chunks with at least one usable fragment
    fragment_count: int
    calls_attempted: int
    truncated: bool = False


@dataclass
class IngestResult:
    provider: str
    source_label: str
    profile: Profile
    profile_text: str
    extraction: ExtractionResult
