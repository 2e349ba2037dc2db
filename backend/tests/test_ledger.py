import unittest
from unittest.mock import MagicMock, patch

from whistlebox.core.config import Settings
from whistlebox.services.commitment import commit
from whistlebox.services.ledger import (
    AnchorService,
    AnchorStatus,
    DisabledLedgerClient,
    LedgerError,
    Web3LedgerClient,
    build_ledger_client,
)

from fakes import FakeLedgerClient

DIGEST = commit({"title": "t", "category": "c", "description": "d"})


class TestAnchorService(unittest.IsolatedAsyncioTestCase):

    async def test_anchored(self):
        client = FakeLedgerClient(reference="0xabc")
        outcome = await AnchorService(client).anchor(DIGEST)
        self.assertEqual(outcome.status, AnchorStatus.ANCHORED)
        self.assertTrue(outcome.anchored)
        self.assertEqual(outcome.reference, "0xabc")
        self.assertEqual(client.submitted, [DIGEST])

    async def test_ledger_error_is_degraded_not_raised(self):
        outcome = await AnchorService(FakeLedgerClient(fail=True)).anchor(DIGEST)
        self.assertEqual(outcome.status, AnchorStatus.DEGRADED)
        self.assertIsNone(outcome.reference)
        self.assertEqual(outcome.error, "LedgerError")

    async def test_timeout_is_degraded(self):
        service = AnchorService(FakeLedgerClient(delay=0.3), timeout_seconds=0.05)
        outcome = await service.anchor(DIGEST)
        self.assertEqual(outcome.status, AnchorStatus.DEGRADED)
        self.assertEqual(outcome.error, "timeout")

    async def test_empty_reference_is_degraded(self):
        outcome = await AnchorService(FakeLedgerClient(reference="")).anchor(DIGEST)
        self.assertEqual(outcome.status, AnchorStatus.DEGRADED)

    async def test_disabled_client_never_called(self):
        service = AnchorService(DisabledLedgerClient())
        self.assertFalse(service.enabled)
        outcome = await service.anchor(DIGEST)
        self.assertEqual(outcome.status, AnchorStatus.DISABLED)
        self.assertFalse(outcome.anchored)


class TestWeb3LedgerClient(unittest.TestCase):

    def setUp(self):
        self.w3 = MagicMock()
        self.w3.eth.get_transaction_count.return_value = 7
        self.w3.eth.gas_price = 2_000_000_000
        self.w3.eth.send_raw_transaction.return_value = b"\x12" * 32
        self.w3.to_hex.return_value = "0x" + "12" * 32
        self.w3.eth.wait_for_transaction_receipt.return_value = {"status": 1, "blockNumber": 42}

        self.account = MagicMock()
        self.account.address = "0x000000000000000000000000000000000000dEaD"

        web3_patch = patch("web3.Web3")
        account_patch = patch("eth_account.Account")
        self.Web3 = web3_patch.start()
        self.Account = account_patch.start()
        self.addCleanup(web3_patch.stop)
        self.addCleanup(account_patch.stop)
        self.Web3.return_value = self.w3
        self.Web3.to_checksum_address.side_effect = lambda a: a
        self.Account.from_key.return_value = self.account

    def test_contract_call(self):
        client = Web3LedgerClient("http://rpc", "0xkey", contract_address="0xcontract", chain_id=5)
        contract_fn = self.w3.eth.contract.return_value.functions.fileComplaint
        contract_fn.return_value.build_transaction.return_value = {"to": "0xcontract", "nonce": 7}

        reference = client.submit_commitment(DIGEST)

        self.assertEqual(reference, "0x" + "12" * 32)
        contract_fn.assert_called_once_with(DIGEST)
        built = contract_fn.return_value.build_transaction.call_args.args[0]
        self.assertEqual(built["nonce"], 7)
        self.assertEqual(built["chainId"], 5)
        self.account.sign_transaction.assert_called_once_with({"to": "0xcontract", "nonce": 7})

    def test_self_send_carries_digest(self):
        client = Web3LedgerClient("http://rpc", "0xkey")
        client.submit_commitment(DIGEST)

        tx = self.account.sign_transaction.call_args.args[0]
        self.assertEqual(tx["to"], self.account.address)
        self.assertEqual(tx["value"], 0)
        self.assertEqual(tx["data"], bytes.fromhex(DIGEST))
        self.w3.eth.contract.assert_not_called()

    def test_reverted_transaction_raises(self):
        self.w3.eth.wait_for_transaction_receipt.return_value = {"status": 0, "blockNumber": 42}
        client = Web3LedgerClient("http://rpc", "0xkey")
        with self.assertRaises(LedgerError):
            client.submit_commitment(DIGEST)

    def test_rpc_failure_wrapped(self):
        self.w3.eth.get_transaction_count.side_effect = ConnectionError("refused")
        client = Web3LedgerClient("http://rpc", "0xkey")
        with self.assertRaises(LedgerError):
            client.submit_commitment(DIGEST)


class TestBuildLedgerClient(unittest.TestCase):

    def test_disabled_without_rpc(self):
        settings = Settings(ENCRYPTION_KEY="k", LEDGER_RPC_URL="", LEDGER_PRIVATE_KEY="")
        self.assertIsInstance(build_ledger_client(settings), DisabledLedgerClient)

    @patch("whistlebox.services.ledger.Web3LedgerClient")
    def test_enabled_with_rpc_and_key(self, mock_client):
        settings = Settings(
            ENCRYPTION_KEY="k",
            LEDGER_RPC_URL="http://rpc",
            LEDGER_PRIVATE_KEY="0xkey",
            LEDGER_CONTRACT_ADDRESS="0xcontract",
        )
        build_ledger_client(settings)
        kwargs = mock_client.call_args.kwargs
        self.assertEqual(kwargs["rpc_url"], "http://rpc")
        self.assertEqual(kwargs["contract_address"], "0xcontract")


if __name__ == "__main__":
    unittest.main()
