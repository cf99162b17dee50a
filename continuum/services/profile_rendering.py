"""
Human-readable rendering of a profile, stored next to the JSON form.
"""

from typing import List, Optional

from ..models.core import Profile

PROFILE_TITLE = 'Portable AI Memory Profile'
MISSING = 'N/A'


def _scalar(value: Optional[str]) -> str:
    return value.strip() if isinstance(value, str) and value.strip() else MISSING


def _items(values: List[str]) -> str:
    return ', '.join(values) or MISSING


def build_profile_text(profile: Profile) -> str:
    """Render a profile as plain text, one labelled line per field."""
    sections = [
        PROFILE_TITLE,
        '',
        'Basic:',
        f'- Name: {_scalar(profile.basic.name)}',
        f'- Age range: {_scalar(profile.basic.age_range)}',
        f'- Location: {_scalar(profile.basic.location)}',
        '',
        'Preferences:',
        f'- Likes: {_items(profile.preferences.likes)}',
        f'- Dislikes: {_items(profile.preferences.dislikes)}',
        f'- Tone: {_scalar(profile.preferences.tone)}',
        '',
        'Work:',
        f'- Roles: {_items(profile.work.roles)}',
        f'- Industries: {_items(profile.work.industries)}',
        f'- Current focus: {_items(profile.work.current_focus)}',
        '',
        'Goals:',
        f'- Short term: {_items(profile.goals.short_term)}',
        f'- Long term: {_items(profile.goals.long_term)}',
        '',
        'Constraints:',
        f'- {_items(profile.constraints)}',
        '',
        'Skills:',
        f'- {_items(profile.skills)}',
        '',
        'Communication style:',
        f'- {_items(profile.communication_style)}',
    ]
    return '\n'.join(sections)
