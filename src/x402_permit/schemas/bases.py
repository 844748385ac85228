"""
Base Schema Models for x402 Permit Payments

Defines the base model every wire-level schema inherits from. Payment payloads
travel base64-encoded inside an HTTP header, so their JSON form has to be
compact and stable.

Core Classes:
    - CanonicalModel: Pydantic base model with compact, alias-aware JSON
    - FrozenModel: Immutable variant used for cached snapshots

Dependencies:
    - pydantic: For data validation and serialization
"""

import base64
import json
from typing import Any, Dict

from pydantic import BaseModel, ConfigDict


class CanonicalModel(BaseModel):
    """
    Pydantic base model with compact camelCase JSON serialization.

    Field names are snake_case in Python and camelCase on the wire (via
    aliases). Both spellings are accepted on input.

    Example:
        class Accepted(CanonicalModel):
            pay_to: str = Field(..., alias="payTo")

        Accepted(payTo="0x...").to_json()  # '{"payTo":"0x..."}'
    """

    model_config = ConfigDict(populate_by_name=True)

    def to_json(self) -> str:
        """
        Serialize to compact JSON using wire (alias) names.

        Field order follows declaration order, so the output is stable for a
        given model.

        Returns:
            str: JSON string without insignificant whitespace.
        """
        data = self.model_dump(mode="json", by_alias=True, exclude_none=True)
        return json.dumps(data, separators=(",", ":"), ensure_ascii=False)

    def to_base64(self) -> str:
        """Encode the compact JSON form as standard base64 (UTF-8)."""
        return base64.b64encode(self.to_json().encode("utf-8")).decode("ascii")

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert model to dictionary representation using wire names.

        Returns:
            Dict[str, Any]: Dictionary with all model fields.
        """
        return self.model_dump(mode="json", by_alias=True)


class FrozenModel(CanonicalModel):
    """
    Immutable CanonicalModel.

    Snapshots shared across concurrent requests (router configuration,
    cached permits) are replaced wholesale, never mutated in place.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)
