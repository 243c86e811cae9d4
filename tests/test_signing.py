"""Tests for signing backends."""

import json

import httpx
import pytest
from stellar_sdk import Keypair, TransactionBuilder

from lumensplit.builder import InvocationBuilder
from lumensplit.config import Settings
from lumensplit.errors import SignerRejected, SignerUnavailable
from lumensplit.signing import create_signer, get_signer_type
from lumensplit.signing.base import SignerType, SigningRequest
from lumensplit.signing.extension import (
    ExtensionSigner,
    HttpExtensionBridge,
    normalize_signed_response,
)
from lumensplit.signing.local import LocalSigner
from lumensplit.signing.web_intent import WebIntentSigner

from conftest import TEST_PASSPHRASE


class FakeExtension:
    """Scriptable wallet extension."""

    def __init__(self, connected=True, access=None, address=None, signed="SIGNED", error=None):
        self.connected = connected
        self.access = access
        self.address = address
        self.signed = signed
        self.error = error
        self.sign_calls = []

    async def is_connected(self):
        return self.connected

    async def request_access(self):
        return self.access

    async def get_address(self):
        return self.address

    async def sign_transaction(self, xdr, network, network_passphrase):
        self.sign_calls.append((xdr, network, network_passphrase))
        if self.error:
            raise self.error
        return self.signed


def request_for(address: str, envelope_xdr: str = "AAAA") -> SigningRequest:
    return SigningRequest(
        envelope_xdr=envelope_xdr,
        network_passphrase=TEST_PASSPHRASE,
        network="TESTNET",
        address=address,
    )


class TestSignedResponseShapes:
    """Tests for extension response normalization."""

    @pytest.mark.parametrize(
        "raw",
        [
            "XDR",
            {"signedTxXdr": "XDR"},
            {"signedTransaction": "XDR"},
            {"transaction": "XDR"},
            {"result": "XDR", "signerAddress": "G..."},
        ],
    )
    def test_known_shapes(self, raw):
        """Test every known shape yields the same XDR."""
        assert normalize_signed_response(raw) == "XDR"

    @pytest.mark.parametrize(
        "raw",
        [{"error": "User declined"}, {"error": {"message": "denied", "code": -4}}],
    )
    def test_error_shapes(self, raw):
        """Test error objects are rejections."""
        with pytest.raises(SignerRejected):
            normalize_signed_response(raw)

    @pytest.mark.parametrize("raw", [None, "", {}, {"signedTxXdr": ""}, 42])
    def test_malformed(self, raw):
        """Test garbage is rejected."""
        with pytest.raises(SignerRejected):
            normalize_signed_response(raw)


class TestExtensionSigner:
    """Tests for ExtensionSigner."""

    @pytest.mark.asyncio
    async def test_missing_extension_fails_fast(self):
        """Test connect fails when the extension is not available."""
        extension = FakeExtension(connected=False)
        signer = ExtensionSigner(extension)

        with pytest.raises(SignerUnavailable, match="not found"):
            await signer.connect()

    @pytest.mark.asyncio
    async def test_connect_uses_access_address(self):
        """Test the address granted by access request."""
        address = Keypair.random().public_key
        signer = ExtensionSigner(FakeExtension(access={"address": address}))

        assert await signer.connect() == address
        assert signer.address == address

    @pytest.mark.asyncio
    async def test_connect_falls_back_to_get_address(self):
        """Test address lookup when access returns no address."""
        address = Keypair.random().public_key
        signer = ExtensionSigner(FakeExtension(access={}, address=address))

        assert await signer.connect() == address

    @pytest.mark.asyncio
    async def test_access_denied(self):
        """Test no address means unavailable."""
        signer = ExtensionSigner(FakeExtension(access={"error": "denied"}, address=None))

        with pytest.raises(SignerUnavailable):
            await signer.connect()

    @pytest.mark.asyncio
    async def test_sign_requires_access(self):
        """Test signing before connect is refused."""
        extension = FakeExtension()
        signer = ExtensionSigner(extension)

        with pytest.raises(SignerUnavailable):
            await signer.sign(request_for(Keypair.random().public_key))
        assert extension.sign_calls == []

    @pytest.mark.asyncio
    async def test_sign_passes_network_context(self):
        """Test the envelope and network are forwarded."""
        address = Keypair.random().public_key
        extension = FakeExtension(access=address, signed={"signedTxXdr": "SIGNED"})
        signer = ExtensionSigner(extension)
        await signer.connect()

        assert await signer.sign(request_for(address, "ENV")) == "SIGNED"
        assert extension.sign_calls == [("ENV", "TESTNET", TEST_PASSPHRASE)]

    @pytest.mark.asyncio
    async def test_backend_exception_is_rejection(self):
        """Test an extension crash surfaces as SignerRejected."""
        address = Keypair.random().public_key
        signer = ExtensionSigner(FakeExtension(access=address, error=RuntimeError("popup closed")))
        await signer.connect()

        with pytest.raises(SignerRejected):
            await signer.sign(request_for(address))

    @pytest.mark.asyncio
    async def test_http_bridge(self):
        """Test the bridge endpoints end to end."""
        address = Keypair.random().public_key

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/status":
                return httpx.Response(200, json={"isConnected": True})
            if request.url.path == "/access":
                return httpx.Response(200, json={"address": address})
            if request.url.path == "/sign":
                body = json.loads(request.content)
                assert body["networkPassphrase"] == TEST_PASSPHRASE
                return httpx.Response(200, json={"signedTxXdr": body["xdr"] + "-signed"})
            return httpx.Response(404)

        bridge = HttpExtensionBridge("http://bridge", transport=httpx.MockTransport(handler))
        signer = ExtensionSigner(bridge)

        assert await signer.connect() == address
        assert await signer.sign(request_for(address, "ENV")) == "ENV-signed"

    @pytest.mark.asyncio
    async def test_unreachable_bridge_is_unavailable(self):
        """Test a dead bridge reports not connected."""
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        bridge = HttpExtensionBridge("http://bridge", transport=httpx.MockTransport(handler))
        signer = ExtensionSigner(bridge)

        assert await signer.health_check() is False
        with pytest.raises(SignerUnavailable):
            await signer.connect()


class TestWebIntentSigner:
    """Tests for WebIntentSigner."""

    def make_signer(self, handler) -> WebIntentSigner:
        return WebIntentSigner(
            "https://intent.test", network="testnet", transport=httpx.MockTransport(handler)
        )

    @pytest.mark.asyncio
    async def test_connect_and_sign(self):
        """Test public_key and tx intents."""
        address = Keypair.random().public_key
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            body = json.loads(request.content)
            seen.append(body)
            if body["intent"] == "public_key":
                return httpx.Response(200, json={"pubkey": address})
            return httpx.Response(200, json={"signed_envelope_xdr": "SIGNED"})

        signer = self.make_signer(handler)

        assert signer.requires_prepared is False
        assert await signer.connect() == address
        assert await signer.sign(request_for(address, "ENV")) == "SIGNED"
        assert seen[1] == {"intent": "tx", "xdr": "ENV", "network": "testnet", "pubkey": address}

    @pytest.mark.asyncio
    async def test_user_declined(self):
        """Test an error answer is a rejection."""
        def handler(request):
            return httpx.Response(200, json={"error": {"message": "User declined", "code": -1}})

        with pytest.raises(SignerRejected, match="declined"):
            await self.make_signer(handler).sign(request_for(Keypair.random().public_key))

    @pytest.mark.asyncio
    async def test_missing_envelope(self):
        """Test a response without signed XDR is a rejection."""
        with pytest.raises(SignerRejected):
            await self.make_signer(lambda r: httpx.Response(200, json={})).sign(
                request_for(Keypair.random().public_key)
            )

    @pytest.mark.asyncio
    async def test_undecodable_response(self):
        """Test non-transport HTTP errors are rejections."""
        def handler(request):
            raise httpx.DecodingError("bad content encoding", request=request)

        with pytest.raises(SignerRejected):
            await self.make_signer(handler).sign(request_for(Keypair.random().public_key))

    @pytest.mark.asyncio
    async def test_unreachable_service(self):
        """Test connection failures mean unavailable."""
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(SignerUnavailable):
            await self.make_signer(handler).connect()


class TestLocalSigner:
    """Tests for LocalSigner."""

    @pytest.mark.asyncio
    async def test_sign_envelope(self, contract_id):
        """Test the envelope comes back signed by the local key."""
        keypair = Keypair.random()
        signer = LocalSigner(keypair.secret)
        address = await signer.connect()
        builder = InvocationBuilder(contract_id=contract_id, network_passphrase=TEST_PASSPHRASE)
        envelope = builder.build(address, 1, "get_group_count")

        signed_xdr = await signer.sign(request_for(address, envelope.to_xdr()))

        signed = TransactionBuilder.from_xdr(signed_xdr, TEST_PASSPHRASE)
        assert len(signed.signatures) == 1
        keypair.verify(signed.hash(), signed.signatures[0].signature)

    @pytest.mark.asyncio
    async def test_wrong_account_rejected(self):
        """Test the key refuses to sign for another account."""
        signer = LocalSigner(Keypair.random().secret)
        await signer.connect()

        with pytest.raises(SignerRejected):
            await signer.sign(request_for(Keypair.random().public_key))

    @pytest.mark.asyncio
    async def test_garbage_envelope_rejected(self):
        """Test undecodable envelopes are rejected."""
        signer = LocalSigner(Keypair.random().secret)
        address = await signer.connect()

        with pytest.raises(SignerRejected):
            await signer.sign(request_for(address, "garbage"))

    def test_invalid_secret(self):
        """Test invalid secret seeds."""
        with pytest.raises(SignerUnavailable):
            LocalSigner("SNOTASECRET")

    @pytest.mark.asyncio
    async def test_no_secret(self):
        """Test connect without a key."""
        with pytest.raises(SignerUnavailable):
            await LocalSigner().connect()


class TestSignerFactory:
    """Tests for signer selection."""

    def test_default_is_extension(self):
        """Test auto-detection without configuration."""
        settings = Settings(_env_file=None, signer_backend="", local_secret_key=None)

        assert get_signer_type(settings) == SignerType.EXTENSION
        assert isinstance(create_signer(settings=settings), ExtensionSigner)

    def test_local_key_selects_local(self):
        """Test a configured secret selects the local signer."""
        settings = Settings(_env_file=None, signer_backend="", local_secret_key=Keypair.random().secret)

        assert get_signer_type(settings) == SignerType.LOCAL
        assert isinstance(create_signer(settings=settings), LocalSigner)

    def test_explicit_backend(self):
        """Test explicit SIGNER_BACKEND wins."""
        settings = Settings(_env_file=None, signer_backend="web-intent", local_secret_key=None)

        assert get_signer_type(settings) == SignerType.WEB_INTENT
        assert isinstance(create_signer(settings=settings), WebIntentSigner)

    def test_explicit_type_argument(self):
        """Test the type argument overrides settings."""
        settings = Settings(_env_file=None, signer_backend="", local_secret_key=None)

        signer = create_signer("web_intent", settings)

        assert signer.signer_type == SignerType.WEB_INTENT
