from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class LocalizedText:
    """Alert text in English and Arabic; admins see their own locale."""

    en: str
    ar: str

    def to_dict(self) -> dict:
        return {"en": self.en, "ar": self.ar}
