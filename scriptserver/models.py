from __future__ import annotations

import enum
import re
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Tuple

from scriptserver.errors import ValidationError

DEFAULT_ICON = '📜'

NAME_RE = re.compile(r'^[a-z0-9_]+$')
_UNSAFE_URL_RE = re.compile(r'[\s\x00-\x1f\x7f]')

# Paths the proxy or admin service already answer on.
RESERVED_NAMES = frozenset({'admin', 'health', 'index', 'login', 'logout', 'static'})


class Kind(str, enum.Enum):
    LOCAL = 'local'
    REDIRECT = 'redirect'

    @classmethod
    def parse(cls, value: str) -> 'Kind':
        try:
            return cls(value)
        except ValueError:
            raise ValidationError(f"Unknown script type '{value}', expected 'local' or 'redirect'") from None


class _Unset:
    def __repr__(self) -> str:
        return 'UNSET'

    def __bool__(self) -> bool:
        return False


# Marks a patch field the caller did not send, as opposed to one sent empty.
UNSET: Any = _Unset()


def normalize_name(raw: str) -> str:
    """Turn a display name into the URL token used as the catalog key."""
    name = (raw or '').strip().lower()
    for ch in (' ', '-', '.'):
        name = name.replace(ch, '_')
    if not name:
        raise ValidationError('Name and description are required')
    if not NAME_RE.match(name):
        raise ValidationError(f"Script name '{name}' may only contain letters, digits, spaces, '-', '.' and '_'")
    if name in RESERVED_NAMES:
        raise ValidationError(f"Script name '{name}' is reserved")
    return name


def validate_redirect_url(url: str) -> str:
    url = (url or '').strip()
    if not url:
        raise ValidationError('Redirect URL is required for redirect type scripts')
    if not url.startswith(('http://', 'https://')):
        raise ValidationError('Redirect URL must start with http:// or https://')
    if url in ('http://', 'https://') or _UNSAFE_URL_RE.search(url):
        raise ValidationError('Redirect URL must be a single URL without spaces')
    return url


@dataclass(frozen=True)
class ScriptEntry:
    name: str
    description: str
    icon: str
    kind: Kind
    target: str

    @property
    def path(self) -> str:
        return self.name

    @property
    def is_redirect(self) -> bool:
        return self.kind is Kind.REDIRECT

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            'name': self.name,
            'path': self.path,
            'description': self.description,
            'icon': self.icon,
            'type': self.kind.value,
        }
        if self.is_redirect:
            data['redirect_url'] = self.target
        else:
            data['script_path'] = self.target
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ScriptEntry':
        kind = Kind.parse(data.get('type') or Kind.LOCAL.value)
        target = data.get('redirect_url') if kind is Kind.REDIRECT else data.get('script_path')
        return cls(
            name=str(data['name']),
            description=str(data.get('description') or ''),
            icon=str(data.get('icon') or DEFAULT_ICON),
            kind=kind,
            target=str(target or ''),
        )


@dataclass(frozen=True)
class AdminCredentials:
    username: str = ''
    password_hash: str = ''


@dataclass(frozen=True)
class Catalog:
    admin: AdminCredentials = field(default_factory=AdminCredentials)
    entries: Tuple[ScriptEntry, ...] = ()

    def get(self, name: str):
        for entry in self.entries:
            if entry.name == name:
                return entry
        return None

    def __contains__(self, name: str) -> bool:
        return self.get(name) is not None

    def names(self):
        return [entry.name for entry in self.entries]

    def with_entry(self, entry: ScriptEntry) -> 'Catalog':
        return replace(self, entries=self.entries + (entry,))

    def with_replaced(self, entry: ScriptEntry) -> 'Catalog':
        return replace(self, entries=tuple(entry if e.name == entry.name else e for e in self.entries))

    def without(self, name: str) -> 'Catalog':
        return replace(self, entries=tuple(e for e in self.entries if e.name != name))


@dataclass(frozen=True)
class NewScript:
    """Validated input for a create call. `name` is still the display name."""

    name: str
    description: str
    icon: str = DEFAULT_ICON
    kind: Kind = Kind.LOCAL
    redirect_url: str = ''
    script_path: str = ''

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> 'NewScript':
        if not isinstance(data, dict):
            raise ValidationError('Invalid request body')
        name = str(data.get('name') or '').strip()
        description = str(data.get('description') or '').strip()
        if not name or not description:
            raise ValidationError('Name and description are required')
        kind = Kind.parse(data.get('type') or Kind.LOCAL.value)
        redirect_url = ''
        if kind is Kind.REDIRECT:
            redirect_url = validate_redirect_url(str(data.get('redirect_url') or ''))
        return cls(
            name=name,
            description=description,
            icon=str(data.get('icon') or '').strip() or DEFAULT_ICON,
            kind=kind,
            redirect_url=redirect_url,
            script_path=str(data.get('script_path') or '').strip(),
        )


@dataclass(frozen=True)
class ScriptPatch:
    """Partial update. Fields left as UNSET keep their current value;
    a field sent as an empty string is an explicit clear."""

    description: Any = UNSET
    icon: Any = UNSET
    kind: Any = UNSET
    redirect_url: Any = UNSET
    script_path: Any = UNSET

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> 'ScriptPatch':
        if not isinstance(data, dict):
            raise ValidationError('Invalid request body')

        def pick(key):
            if key not in data:
                return UNSET
            value = data[key]
            return '' if value is None else str(value).strip()

        kind = pick('type')
        if kind is not UNSET:
            if not kind:
                raise ValidationError('Script type cannot be cleared')
            kind = Kind.parse(kind)
        return cls(
            description=pick('description'),
            icon=pick('icon'),
            kind=kind,
            redirect_url=pick('redirect_url'),
            script_path=pick('script_path'),
        )

    def is_empty(self) -> bool:
        return all(getattr(self, f) is UNSET for f in ('description', 'icon', 'kind', 'redirect_url', 'script_path'))
