"""Tests for the encapsulate, decapsulate and derived key handlers."""

from __future__ import annotations

import pytest

from qubesec_operator.constants import (
    KIND_DECAPSULATE_SECRET,
    KIND_DERIVED_KEY,
    KIND_ENCAPSULATE_SECRET,
    KIND_KEM_KEY_PAIR,
)
from qubesec_operator.handlers.base import ReconcileOutcome
from qubesec_operator.handlers.decapsulate import DecapsulateSecretHandler
from qubesec_operator.handlers.derived_key import DerivedKeyHandler
from qubesec_operator.handlers.encapsulate import EncapsulateSecretHandler
from qubesec_operator.handlers.keypair import KEMKeyPairHandler
from qubesec_operator.utils.status import fingerprint, full_fingerprint


class Cluster:
    """Handlers for every KEM kind sharing one store."""

    def __init__(self, store, provider):
        self.store = store
        self.key_pairs = KEMKeyPairHandler(store=store, provider=provider)
        self.encapsulations = EncapsulateSecretHandler(store=store, provider=provider)
        self.decapsulations = DecapsulateSecretHandler(store=store, provider=provider)
        self.derived_keys = DerivedKeyHandler(store=store, provider=provider)

    def key_pair(self, name, namespace="default", algorithm="Kyber512"):
        self.store.add_object(KIND_KEM_KEY_PAIR, name, spec={"algorithm": algorithm}, namespace=namespace)
        return self.key_pairs.reconcile(name, namespace)

    def encapsulate(self, name, key_pair_ref, namespace="default", algorithm="Kyber512"):
        self.store.add_object(
            KIND_ENCAPSULATE_SECRET,
            name,
            spec={"algorithm": algorithm, "publicKeyRef": key_pair_ref},
            namespace=namespace,
        )
        return self.encapsulations.reconcile(name, namespace)

    def decapsulate(self, name, key_pair_ref, namespace="default", algorithm="Kyber512", **ciphertext):
        self.store.add_object(
            KIND_DECAPSULATE_SECRET,
            name,
            spec={"algorithm": algorithm, "privateKeyRef": key_pair_ref, **ciphertext},
            namespace=namespace,
        )
        return self.decapsulations.reconcile(name, namespace)

    def derive(self, name, shared_secret_ref, namespace="default", key_type="AES-256", **extra):
        self.store.add_object(
            KIND_DERIVED_KEY,
            name,
            spec={"sharedSecretRef": shared_secret_ref, "keyType": key_type, **extra},
            namespace=namespace,
        )
        return self.derived_keys.reconcile(name, namespace)


@pytest.fixture
def cluster(store, provider):
    return Cluster(store, provider)


class TestKeyExchange:
    """Test cases for a full KEM exchange."""

    def test_both_sides_share_a_secret(self, cluster, store):
        """Test decapsulation recovers the encapsulated shared secret."""
        cluster.key_pair("alice")

        assert cluster.encapsulate("enc", {"name": "alice"}) == ReconcileOutcome.SUCCEEDED
        assert cluster.decapsulate("dec", {"name": "alice"}, ciphertextRef={"name": "enc"}) == ReconcileOutcome.SUCCEEDED

        sent = store.secret_data("enc-shared-secret")
        received = store.secret_data("dec-shared-secret")
        assert received["shared-secret"] == sent["shared-secret"]

        enc_status = store.status_of(KIND_ENCAPSULATE_SECRET, "enc")
        dec_status = store.status_of(KIND_DECAPSULATE_SECRET, "dec")
        assert enc_status["ciphertext"] == sent["ciphertext"].hex()
        assert enc_status["fingerprint"] == dec_status["fingerprint"] == fingerprint(sent["shared-secret"])
        assert dec_status["sharedSecretReference"] == {"name": "dec-shared-secret", "namespace": "default"}

    def test_inline_ciphertext(self, cluster, store):
        """Test decapsulation of a ciphertext given inline as hex."""
        cluster.key_pair("alice")
        cluster.encapsulate("enc", {"name": "alice"})
        ciphertext = store.status_of(KIND_ENCAPSULATE_SECRET, "enc")["ciphertext"]

        assert cluster.decapsulate("dec", {"name": "alice"}, ciphertext=ciphertext) == ReconcileOutcome.SUCCEEDED
        assert (
            store.secret_data("dec-shared-secret")["shared-secret"]
            == store.secret_data("enc-shared-secret")["shared-secret"]
        )

    def test_encapsulation_is_not_repeated(self, cluster, store):
        """Test a second pass keeps the original shared secret."""
        cluster.key_pair("alice")
        cluster.encapsulate("enc", {"name": "alice"})
        first = store.secret_data("enc-shared-secret")

        assert cluster.encapsulations.reconcile("enc", "default") == ReconcileOutcome.UNCHANGED
        assert store.secret_data("enc-shared-secret") == first

    def test_cross_namespace_reference(self, cluster, store):
        """Test a key pair in another namespace is resolved through an explicit namespace."""
        cluster.key_pair("alice", namespace="keys")

        outcome = cluster.encapsulate("enc", {"name": "alice", "namespace": "keys"}, namespace="apps")

        assert outcome == ReconcileOutcome.SUCCEEDED
        assert ("apps", "enc-shared-secret") in store.secrets

    def test_namespace_defaults_to_requester(self, cluster):
        """Test a reference without namespace resolves in the requester's namespace."""
        cluster.key_pair("alice", namespace="keys")

        assert cluster.encapsulate("enc", {"name": "alice"}, namespace="apps") == ReconcileOutcome.FAILED
        assert cluster.encapsulate("enc2", {"name": "alice"}, namespace="keys") == ReconcileOutcome.SUCCEEDED


class TestPendingReferences:
    """Test cases for references that are not ready yet."""

    def test_waits_for_key_pair(self, cluster, store, event_reasons):
        """Test encapsulation stays Pending until the key pair succeeds."""
        store.add_object(KIND_KEM_KEY_PAIR, "alice", spec={"algorithm": "Kyber512"})

        assert cluster.encapsulate("enc", {"name": "alice"}) == ReconcileOutcome.PENDING
        status = store.status_of(KIND_ENCAPSULATE_SECRET, "enc")
        assert status["status"] == "Pending"
        assert "is not ready" in status["error"]
        assert "ReconcilePending" in event_reasons()
        assert ("default", "enc-shared-secret") not in store.secrets

        cluster.key_pairs.reconcile("alice", "default")
        assert cluster.encapsulations.reconcile("enc", "default") == ReconcileOutcome.SUCCEEDED
        assert store.status_of(KIND_ENCAPSULATE_SECRET, "enc")["error"] == ""

    def test_missing_key_pair_fails(self, cluster, store):
        """Test a reference to a missing key pair fails the resource."""
        assert cluster.encapsulate("enc", {"name": "nobody"}) == ReconcileOutcome.FAILED
        assert "QuantumKEMKeyPair default/nobody not found" in store.status_of(KIND_ENCAPSULATE_SECRET, "enc")["error"]

    def test_decapsulation_waits_for_encapsulation(self, cluster, store):
        """Test decapsulation stays Pending while the referenced encapsulation is pending."""
        cluster.key_pair("alice")
        store.add_object(KIND_KEM_KEY_PAIR, "bob", spec={"algorithm": "Kyber512"})
        cluster.encapsulate("enc", {"name": "bob"})

        assert cluster.decapsulate("dec", {"name": "alice"}, ciphertextRef={"name": "enc"}) == ReconcileOutcome.PENDING


class TestAlgorithmMismatch:
    """Test cases for algorithm mismatches between encapsulation and decapsulation."""

    def test_mismatch_warns_but_proceeds(self, cluster, store, provider, event_reasons):
        """Test a declared algorithm mismatch is reported without blocking decapsulation."""
        cluster.key_pair("alice")
        public_key = store.secret_data("alice")["public-key"]
        result = provider.encapsulate("Kyber512", public_key)
        store.add_object(
            KIND_ENCAPSULATE_SECRET,
            "enc",
            spec={"algorithm": "Kyber768", "publicKeyRef": {"name": "alice"}},
            status={"status": "Success", "ciphertext": result.ciphertext.hex()},
        )

        outcome = cluster.decapsulate("dec", {"name": "alice"}, ciphertextRef={"name": "enc"})

        assert outcome == ReconcileOutcome.SUCCEEDED
        assert "AlgorithmMismatch" in event_reasons()
        assert store.secret_data("dec-shared-secret")["shared-secret"] == result.shared_secret

    def test_alias_is_not_a_mismatch(self, cluster, event_reasons):
        """Test alias spellings of the same algorithm are not reported."""
        cluster.key_pair("alice")
        cluster.encapsulate("enc", {"name": "alice"})

        outcome = cluster.decapsulate(
            "dec", {"name": "alice"}, algorithm="CRYSTALS-Kyber512", ciphertextRef={"name": "enc"}
        )

        assert outcome == ReconcileOutcome.SUCCEEDED
        assert "AlgorithmMismatch" not in event_reasons()

    def test_wrong_key_algorithm_fails(self, cluster, store):
        """Test decapsulating with a key of another algorithm fails."""
        cluster.key_pair("alice")
        cluster.encapsulate("enc", {"name": "alice"})

        outcome = cluster.decapsulate("dec", {"name": "alice"}, algorithm="Kyber768", ciphertextRef={"name": "enc"})

        assert outcome == ReconcileOutcome.FAILED
        assert "generated for Kyber512" in store.status_of(KIND_DECAPSULATE_SECRET, "dec")["error"]


class TestDerivedKey:
    """Test cases for key derivation."""

    def test_derives_from_encapsulation(self, cluster, store):
        """Test a key is derived and fingerprinted."""
        cluster.key_pair("alice")
        cluster.encapsulate("enc", {"name": "alice"})

        assert cluster.derive("aes", {"name": "enc"}, salt="00ff", info="6869") == ReconcileOutcome.SUCCEEDED

        data = store.secret_data("aes-derived-key")
        assert len(data["derived-key"]) == 32
        assert data["fingerprint"] == full_fingerprint(data["derived-key"]).encode("ascii")
        assert data["key-type"] == b"AES-256"

        status = store.status_of(KIND_DERIVED_KEY, "aes")
        digest = full_fingerprint(data["derived-key"])
        assert status["keyFingerprint"] == digest
        assert status["fingerprint"] == digest[:10]
        assert status["fingerprintHash"] == digest[:8]
        assert status["keyType"] == "AES-256"
        assert status["usedSalt"] == "00ff"
        assert status["usedInfo"] == "6869"
        assert status["derivedKeyReference"] == {"name": "aes-derived-key", "namespace": "default"}

    def test_both_sides_derive_the_same_key(self, cluster, store):
        """Test keys derived from either side of the exchange match."""
        cluster.key_pair("alice")
        cluster.encapsulate("enc", {"name": "alice"})
        cluster.decapsulate("dec", {"name": "alice"}, ciphertextRef={"name": "enc"})

        cluster.derive("sender", {"name": "enc"}, info="01")
        cluster.derive("receiver", {"name": "dec"}, info="01")

        assert (
            store.secret_data("sender-derived-key")["derived-key"]
            == store.secret_data("receiver-derived-key")["derived-key"]
        )

    def test_salt_change_keeps_key(self, cluster, store):
        """Test editing the salt after derivation keeps the key and the recorded salt."""
        cluster.key_pair("alice")
        cluster.encapsulate("enc", {"name": "alice"})
        cluster.derive("aes", {"name": "enc"}, salt="00")
        key = store.secret_data("aes-derived-key")["derived-key"]

        store.update_spec(KIND_DERIVED_KEY, "aes", {"sharedSecretRef": {"name": "enc"}, "keyType": "AES-256", "salt": "ff"})
        cluster.derived_keys.reconcile("aes", "default")

        assert store.secret_data("aes-derived-key")["derived-key"] == key
        assert store.status_of(KIND_DERIVED_KEY, "aes")["usedSalt"] == "00"

    def test_waits_for_shared_secret(self, cluster, store):
        """Test derivation stays Pending until the producer succeeds."""
        store.add_object(KIND_ENCAPSULATE_SECRET, "enc", status={"status": "Pending"})

        assert cluster.derive("aes", {"name": "enc"}) == ReconcileOutcome.PENDING

    def test_missing_producer_names_both_kinds(self, cluster, store):
        """Test the failure names both kinds that could produce a shared secret."""
        assert cluster.derive("aes", {"name": "nothing"}) == ReconcileOutcome.FAILED

        error = store.status_of(KIND_DERIVED_KEY, "aes")["error"]
        assert "QuantumEncapsulateSecret or QuantumDecapsulateSecret" in error
        assert "default/nothing" in error
