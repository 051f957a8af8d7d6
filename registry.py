"""In-memory registry of form profiles keyed by document type."""

from __future__ import annotations

from functools import lru_cache
from typing import Dict, Iterable, Optional, Sequence

from loader import load_all_profiles
from schemas.document_types import DocumentTypeId
from schemas.profile import FormProfile, generic_profile
from settings import get_settings

DEFAULT_GENERIC_MODEL = "prebuilt-read"


class FormProfileRegistry:
    """Indexes profiles by document type. Read-only once built."""

    def __init__(
        self,
        profiles: Iterable[FormProfile] | None = None,
        generic_model_id: str = DEFAULT_GENERIC_MODEL,
    ) -> None:
        base_profiles = list(profiles) if profiles is not None else list(load_all_profiles())
        self._generic_model_id = generic_model_id
        self._by_type: Dict[DocumentTypeId, FormProfile] = {}
        for profile in sorted(base_profiles, key=lambda p: p.document_type.priority):
            self._by_type[profile.document_type] = profile

    @property
    def generic_model_id(self) -> str:
        return self._generic_model_id

    @property
    def profiles(self) -> Sequence[FormProfile]:
        """Profiles in classifier priority order."""
        return tuple(self._by_type.values())

    @property
    def supported_types(self) -> Sequence[DocumentTypeId]:
        return tuple(self._by_type.keys())

    def profile_for(self, document_type: DocumentTypeId | str) -> Optional[FormProfile]:
        return self._by_type.get(DocumentTypeId.parse(document_type))

    def resolve(self, document_type: DocumentTypeId | str) -> FormProfile:
        """Profile for ``document_type`` or a pass-through profile when none is registered."""
        doc_type = DocumentTypeId.parse(document_type)
        profile = self._by_type.get(doc_type)
        if profile is None:
            return generic_profile(doc_type)
        return profile

    def model_id_for(self, document_type: DocumentTypeId | str) -> str:
        profile = self.profile_for(document_type)
        if profile is None or not profile.model_id:
            return self._generic_model_id
        return profile.model_id


def build_default_registry(profiles_dir: str | None = None, generic_model_id: str = DEFAULT_GENERIC_MODEL) -> FormProfileRegistry:
    return FormProfileRegistry(load_all_profiles(profiles_dir), generic_model_id=generic_model_id)


@lru_cache(maxsize=1)
def default_registry() -> FormProfileRegistry:
    """Process-wide registry built from the configured profile directory."""
    settings = get_settings()
    return build_default_registry(settings.profiles_dir, settings.generic_model_id)


__all__ = ["DEFAULT_GENERIC_MODEL", "FormProfileRegistry", "build_default_registry", "default_registry"]
