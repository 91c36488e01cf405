# SPDX-License-Identifier: Apache-2.0

"""
Identity provider token verification.

The identity provider signs RS256 JWTs; this service only verifies them and
returns their claims. Mapping claims to a CivicAid user happens in the
identity resolver.
"""

import jwt
from typing import Optional, Dict, Any
from opentelemetry import trace
import logging

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)


class TokenValidationError(Exception):
    """Raised when token validation fails."""
    pass


class AuthService:
    """
    JWT verification service with RS256 signatures.
    """

    def __init__(
        self,
        public_key: str,
        issuer: Optional[str] = None,
        audience: Optional[str] = None,
        leeway_seconds: int = 30
    ):
        """
        Initialize the authentication service.

        Args:
            public_key: RS256 public key for token verification (PEM format)
            issuer: Expected `iss` claim, if any
            audience: Expected `aud` claim, if any
            leeway_seconds: Clock skew tolerance for exp/nbf
        """
        self.public_key = public_key
        self.issuer = issuer
        self.audience = audience
        self.leeway_seconds = leeway_seconds
        self.algorithm = "RS256"

    def validate_token(self, token: str) -> Dict[str, Any]:
        """
        Validate and decode a JWT token.

        Args:
            token: JWT token string to validate

        Returns:
            Decoded token payload

        Raises:
            TokenValidationError: If token is invalid or expired
        """
        with tracer.start_as_current_span("auth.validate_token") as span:
            span.set_attribute("auth.operation", "validate_token")

            options = {"verify_exp": True, "require": ["sub", "exp"]}
            if not self.audience:
                options["verify_aud"] = False

            try:
                payload = jwt.decode(
                    token,
                    self.public_key,
                    algorithms=[self.algorithm],
                    issuer=self.issuer,
                    audience=self.audience,
                    leeway=self.leeway_seconds,
                    options=options
                )

                span.set_attributes({
                    "auth.validation_result": "success",
                    "user.external_id": payload.get("sub")
                })

                logger.debug(
                    "Token validated successfully",
                    extra={"external_user_id": payload.get("sub")}
                )

                return payload

            except jwt.ExpiredSignatureError:
                span.set_attribute("auth.validation_result", "expired")
                logger.warning("Token validation failed: token expired")
                raise TokenValidationError("Token has expired")

            except jwt.InvalidTokenError as e:
                span.set_attribute("auth.validation_result", "invalid")
                logger.warning(f"Token validation failed: {str(e)}")
                raise TokenValidationError(f"Invalid token: {str(e)}")
