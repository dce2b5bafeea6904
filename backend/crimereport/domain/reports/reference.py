"""Reference number generation.

A reference number is a ULID: 48 bits of millisecond timestamp followed by 80
bits from the OS CSPRNG, rendered as 26 uppercase Crockford base32 characters.
No coordination is needed between concurrent submissions.
"""

from __future__ import annotations

import ulid

from crimereport.domain.exceptions import ReferenceUnavailable


def new_reference_number() -> str:
	try:
		return ulid.new().str
	except (OSError, NotImplementedError) as exc:
		raise ReferenceUnavailable() from exc


def normalize_reference(raw: str | None) -> str:
	"""Canonical form used for every lookup: trimmed and upper-cased."""
	return (raw or "").strip().upper()
