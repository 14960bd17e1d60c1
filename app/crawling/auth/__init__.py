"""
Authentication adapter exports.
"""

from app.crawling.auth.adapter import AuthenticationAdapter, PreparedAuth
from app.crawling.auth.config import (
    AuthConfig,
    BasicAuth,
    CookieAuth,
    CookieSpec,
    FormAuth,
    HeaderAuth,
    SealedCredential,
    SSOAuth,
    parse_auth_config,
)
from app.crawling.auth.crypto import CredentialCipher, CredentialDecryptionError
from app.crawling.auth.domains import ErrorClassification, classify_error, is_internal_domain
from app.crawling.auth.login_detection import HeuristicLoginDetector, LoginDetection, LoginDetector

__all__ = [
    "AuthConfig",
    "AuthenticationAdapter",
    "BasicAuth",
    "CookieAuth",
    "CookieSpec",
    "CredentialCipher",
    "CredentialDecryptionError",
    "ErrorClassification",
    "FormAuth",
    "HeaderAuth",
    "HeuristicLoginDetector",
    "LoginDetection",
    "LoginDetector",
    "PreparedAuth",
    "SSOAuth",
    "SealedCredential",
    "classify_error",
    "is_internal_domain",
    "parse_auth_config",
]
