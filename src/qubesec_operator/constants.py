"""Constants for the QubeSec Operator."""

import os

# API Group
API_GROUP = "qubesec.io"
API_VERSION = "v1"
API_GROUP_VERSION = f"{API_GROUP}/{API_VERSION}"

# Resource Kinds
KIND_KEM_KEY_PAIR = "QuantumKEMKeyPair"
KIND_SIGNATURE_KEY_PAIR = "QuantumSignatureKeyPair"
KIND_ENCAPSULATE_SECRET = "QuantumEncapsulateSecret"
KIND_DECAPSULATE_SECRET = "QuantumDecapsulateSecret"
KIND_DERIVED_KEY = "QuantumDerivedKey"
KIND_SIGN_MESSAGE = "QuantumSignMessage"
KIND_VERIFY_SIGNATURE = "QuantumVerifySignature"
KIND_RANDOM_NUMBER = "QuantumRandomNumber"
KIND_CERTIFICATE = "QuantumCertificate"

# Plural resource names used by the CustomObjectsApi
PLURALS = {
    KIND_KEM_KEY_PAIR: "quantumkemkeypairs",
    KIND_SIGNATURE_KEY_PAIR: "quantumsignaturekeypairs",
    KIND_ENCAPSULATE_SECRET: "quantumencapsulatesecrets",
    KIND_DECAPSULATE_SECRET: "quantumdecapsulatesecrets",
    KIND_DERIVED_KEY: "quantumderivedkeys",
    KIND_SIGN_MESSAGE: "quantumsignmessages",
    KIND_VERIFY_SIGNATURE: "quantumverifysignatures",
    KIND_RANDOM_NUMBER: "quantumrandomnumbers",
    KIND_CERTIFICATE: "quantumcertificates",
}

# Shared secrets may be produced by either kind; lookup order is fixed.
SHARED_SECRET_PRODUCER_KINDS = (KIND_ENCAPSULATE_SECRET, KIND_DECAPSULATE_SECRET)

# Status values
STATUS_PENDING = "Pending"
STATUS_SUCCESS = "Success"
STATUS_FAILED = "Failed"
STATUS_VALID = "Valid"
STATUS_INVALID = "Invalid"

# Output secret name suffixes
SUFFIX_SHARED_SECRET = "-shared-secret"
SUFFIX_DERIVED_KEY = "-derived-key"
SUFFIX_SIGNATURE = "-signature"

# Secret data keys
KEY_PUBLIC = "public-key"
KEY_PRIVATE = "private-key"
KEY_SHARED_SECRET = "shared-secret"
KEY_CIPHERTEXT = "ciphertext"
KEY_DERIVED_KEY = "derived-key"
KEY_FINGERPRINT = "fingerprint"
KEY_KEY_TYPE = "key-type"
KEY_RANDOM_NUMBER = "quantumrandomnumber"
KEY_TLS_CERT = "tls.crt"
KEY_TLS_KEY = "tls.key"
DEFAULT_MESSAGE_KEY = "message"
DEFAULT_SIGNATURE_KEY = "signature"

# Labels
LABEL_MANAGED_BY = "app.kubernetes.io/managed-by"
LABEL_OWNER_KIND = f"{API_GROUP}/owner-kind"
LABEL_OWNER_NAME = f"{API_GROUP}/owner-name"

# Field Manager
FIELD_MANAGER = "qubesec-operator"
CONTROLLER_NAME = "qubesec-operator"

# Fingerprints
FINGERPRINT_LENGTH = 10
FINGERPRINT_HASH_LENGTH = 8

# Derived keys
DERIVED_KEY_LENGTH = 32
DERIVED_KEY_TYPES = ("AES-256", "ChaCha20", "HMAC-SHA256")

# Random numbers
DEFAULT_RANDOM_BYTES = 32
DEFAULT_RANDOM_ALGORITHM = "system"
MAX_RANDOM_NUMBER_NAME_LENGTH = 52
MIN_SEED_LENGTH = 48

# Certificates
DEFAULT_CERTIFICATE_DAYS = 365
OPENSSL_BINARY = os.getenv("OPENSSL_BINARY", "openssl")

# Runtime configuration
METRICS_PORT = int(os.getenv("METRICS_PORT", "8080"))
RESYNC_INTERVAL_SECONDS = float(os.getenv("RESYNC_INTERVAL_SECONDS", "300"))
PENDING_RETRY_DELAY_SECONDS = float(os.getenv("PENDING_RETRY_DELAY_SECONDS", "10"))
CONFLICT_RETRY_DELAY_SECONDS = float(os.getenv("CONFLICT_RETRY_DELAY_SECONDS", "1"))
STATUS_WRITE_ATTEMPTS = int(os.getenv("STATUS_WRITE_ATTEMPTS", "3"))
RECONCILE_TIMEOUT_SECONDS = float(os.getenv("RECONCILE_TIMEOUT_SECONDS", "60"))
MAX_WORKERS = int(os.getenv("MAX_WORKERS", "4"))
SEED_FETCH_TIMEOUT_SECONDS = float(os.getenv("SEED_FETCH_TIMEOUT_SECONDS", "10"))
CERTIFICATE_TIMEOUT_SECONDS = float(os.getenv("CERTIFICATE_TIMEOUT_SECONDS", "30"))

# Event Reasons
EVENT_REASON_RECONCILE_STARTED = "ReconcileStarted"
EVENT_REASON_RECONCILE_FAILED = "ReconcileFailed"
EVENT_REASON_RECONCILE_PENDING = "ReconcilePending"
EVENT_REASON_KEY_PAIR_GENERATED = "KeyPairGenerated"
EVENT_REASON_SHARED_SECRET_ENCAPSULATED = "SharedSecretEncapsulated"
EVENT_REASON_SHARED_SECRET_DECAPSULATED = "SharedSecretDecapsulated"
EVENT_REASON_KEY_DERIVED = "KeyDerived"
EVENT_REASON_MESSAGE_SIGNED = "MessageSigned"
EVENT_REASON_SIGNATURE_VERIFIED = "SignatureVerified"
EVENT_REASON_SIGNATURE_INVALID = "SignatureInvalid"
EVENT_REASON_RANDOM_NUMBER_GENERATED = "RandomNumberGenerated"
EVENT_REASON_CERTIFICATE_ISSUED = "CertificateIssued"
EVENT_REASON_ALGORITHM_MISMATCH = "AlgorithmMismatch"
