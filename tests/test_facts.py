"""Tests for checkin_watchdog.facts."""

from unittest.mock import MagicMock, patch

from checkin_watchdog.facts import NodeFacts


class TestNodeFacts:
    """Tests for NodeFacts."""

    def test_canonical_identity_prefers_address(self, reference_facts):
        assert reference_facts.canonical_identity == "10.0.2.15"

    def test_canonical_identity_falls_back_to_fqdn(self):
        assert NodeFacts(fqdn="node1.example.com").canonical_identity == "node1.example.com"

    def test_gather(self):
        sock = MagicMock()
        sock.getsockname.return_value = ("10.0.2.15", 40000)
        with patch("checkin_watchdog.facts.socket.getfqdn", return_value="n1.example.com"), \
                patch("checkin_watchdog.facts.socket.socket", return_value=sock):
            facts = NodeFacts.gather()

        assert facts == NodeFacts(fqdn="n1.example.com", ipaddress="10.0.2.15")
        sock.close.assert_called_once()

    def test_gather_without_network(self):
        sock = MagicMock()
        sock.connect.side_effect = OSError("Network is unreachable")
        with patch("checkin_watchdog.facts.socket.getfqdn", return_value="n1.example.com"), \
                patch("checkin_watchdog.facts.socket.socket", return_value=sock):
            facts = NodeFacts.gather()

        assert facts.ipaddress is None
        assert facts.canonical_identity == "n1.example.com"
        sock.close.assert_called_once()

    def test_gather_without_ipv4_socket(self):
        with patch("checkin_watchdog.facts.socket.getfqdn", return_value="n1.example.com"), \
                patch(
                    "checkin_watchdog.facts.socket.socket",
                    side_effect=OSError("Address family not supported by protocol"),
                ):
            facts = NodeFacts.gather()

        assert facts == NodeFacts(fqdn="n1.example.com", ipaddress=None)

    def test_gather_ignores_loopback(self):
        sock = MagicMock()
        sock.getsockname.return_value = ("127.0.0.1", 40000)
        with patch("checkin_watchdog.facts.socket.getfqdn", return_value="n1"), \
                patch("checkin_watchdog.facts.socket.socket", return_value=sock):
            assert NodeFacts.gather().ipaddress is None
