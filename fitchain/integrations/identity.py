# backend/fitchain/integrations/identity.py
"""
World ID proof verification through the cloud verify endpoint.

Proofs are checked before any database transaction is opened; a failed or
unreachable verification is terminal for the request.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests
from web3 import Web3

from ..errors import UpstreamFailure, ValidationError

logger = logging.getLogger(__name__)

REQUIRED_PROOF_FIELDS = ("proof", "merkle_root", "nullifier_hash")


@dataclass
class VerificationResult:
    success: bool
    nullifier_hash: Optional[str] = None
    error_code: Optional[str] = None
    error_detail: Optional[str] = None


def hash_to_field(signal: str) -> str:
    """keccak256(signal) shifted right 8 bits, as a 0x-prefixed 32-byte hex string."""
    digest = Web3.keccak(text=signal or "")
    value = int.from_bytes(digest, "big") >> 8
    return "0x" + format(value, "064x")


class IdentityProvider:
    def verify_proof(
        self, payload: Dict[str, Any], action: str, signal: Optional[str] = None
    ) -> VerificationResult:
        raise NotImplementedError


class WorldIdVerifier(IdentityProvider):
    def __init__(self, app_id: str, base_url: str, timeout: float = 20.0, session=None):
        self.app_id = app_id
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def verify_proof(
        self, payload: Dict[str, Any], action: str, signal: Optional[str] = None
    ) -> VerificationResult:
        if not self.app_id:
            raise UpstreamFailure("World ID app id is not configured")
        if not self.app_id.startswith("app_"):
            raise UpstreamFailure("World ID app id has an invalid format")

        missing = [f for f in REQUIRED_PROOF_FIELDS if not payload.get(f)]
        if missing:
            raise ValidationError(f"proof payload is missing: {', '.join(missing)}")

        body = {
            "nullifier_hash": payload["nullifier_hash"],
            "merkle_root": payload["merkle_root"],
            "proof": payload["proof"],
            "verification_level": payload.get("verification_level", "orb"),
            "action": action,
            "signal_hash": hash_to_field(signal or ""),
        }
        url = f"{self.base_url}/{self.app_id}"

        try:
            response = self.session.post(url, json=body, timeout=self.timeout)
        except requests.RequestException as e:
            logger.error("World ID verification request failed: %s", e)
            raise UpstreamFailure("Identity provider is unreachable")

        if response.status_code >= 500:
            logger.error("World ID verification upstream error: %s", response.status_code)
            raise UpstreamFailure("Identity provider returned an error")

        try:
            data = response.json()
        except ValueError:
            data = {}

        if response.ok and data.get("success", True):
            logger.info("World ID verification succeeded for action=%s", action)
            return VerificationResult(
                success=True,
                nullifier_hash=data.get("nullifier_hash") or payload["nullifier_hash"],
            )

        logger.info(
            "World ID verification rejected: code=%s detail=%s",
            data.get("code"),
            data.get("detail"),
        )
        return VerificationResult(
            success=False,
            error_code=data.get("code"),
            error_detail=data.get("detail") or "Verification failed",
        )
