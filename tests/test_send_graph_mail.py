import unittest
from datetime import datetime, timezone, timedelta
from unittest.mock import patch, MagicMock
from freezegun import freeze_time

from automation_watch import send_graph_mail as runbook
from automation_watch.errors import AuthenticationError
from automation_watch.keyvault import StoredSecret
from automation_watch.settings import EnvironmentVariableStore, MailSenderConfig


class TestSendGraphMail(unittest.TestCase):
    def setUp(self):
        self.fixed_now = datetime(2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
        self.env = {
            "KeyVaultName": "kv-mail",
            "SecretName": "mail-secret",
            "TransactionalMailAppId": "app-id",
            "TenantId": "tenant-id",
            "From": "noreply@example.com",
            "ExpirationWarningAddress": "admins@example.com",
        }
        self.config = MailSenderConfig.load(EnvironmentVariableStore(self.env))
        self.credential = MagicMock()

    def secret(self, expires_in):
        expires_at = self.fixed_now + expires_in if expires_in is not None else None
        return StoredSecret(name="mail-secret", value="s3cret", expires_at=expires_at)

    def test_parse_args(self):
        self.assertEqual(runbook.parse_args(["a@example.com", "Hi", "Body"]), ("a@example.com", "Hi", "Body"))
        self.assertEqual(runbook.parse_args(["a@example.com"]), ("a@example.com", "", ""))
        self.assertEqual(
            runbook.parse_args(["--To", "a@example.com", "--Subject", "Hi", "--Content", "Body"]),
            ("a@example.com", "Hi", "Body"),
        )
        with self.assertRaises(SystemExit):
            runbook.parse_args([])

    @freeze_time("2025-01-01 12:00:00")
    @patch('automation_watch.send_graph_mail.send_graph_mail')
    @patch('automation_watch.send_graph_mail.acquire_mail_token', return_value="graph-token")
    @patch('automation_watch.send_graph_mail.get_secret')
    def test_secret_far_from_expiry_sends_only_primary(self, mock_secret, mock_token, mock_send):
        mock_secret.return_value = self.secret(timedelta(days=11))

        sent = runbook.run(self.config, "user@example.com", "Hello", "<p>Hi</p>", self.credential)

        self.assertEqual(len(sent), 1)
        mock_token.assert_called_once_with("tenant-id", "app-id", "s3cret")
        mock_send.assert_called_once()
        token, sender, notification = mock_send.call_args.args
        self.assertEqual((token, sender), ("graph-token", "noreply@example.com"))
        self.assertEqual(notification.to, "user@example.com")
        self.assertEqual(notification.subject, "Hello")
        self.assertEqual(notification.body, "<p>Hi</p>")

    @freeze_time("2025-01-01 12:00:00")
    @patch('automation_watch.send_graph_mail.send_graph_mail')
    @patch('automation_watch.send_graph_mail.acquire_mail_token', return_value="graph-token")
    @patch('automation_watch.send_graph_mail.get_secret')
    def test_secret_at_threshold_sends_warning_too(self, mock_secret, mock_token, mock_send):
        mock_secret.return_value = self.secret(timedelta(days=10))

        sent = runbook.run(self.config, "user@example.com", "Hello", "<p>Hi</p>", self.credential)

        self.assertEqual(len(sent), 2)
        self.assertEqual(mock_send.call_count, 2)
        primary = mock_send.call_args_list[0].args[2]
        warning = mock_send.call_args_list[1].args[2]
        self.assertEqual(primary.to, "user@example.com")
        self.assertEqual(warning.to, "admins@example.com")
        self.assertIn("expiring in 10 days", warning.subject)

    @patch('automation_watch.send_graph_mail.send_graph_mail')
    @patch('automation_watch.send_graph_mail.acquire_mail_token', return_value="graph-token")
    @patch('automation_watch.send_graph_mail.get_secret')
    def test_secret_without_expiry_never_warns(self, mock_secret, mock_token, mock_send):
        mock_secret.return_value = self.secret(None)

        runbook.run(self.config, "user@example.com", "Hello", "", self.credential)
        mock_send.assert_called_once()

    @patch('automation_watch.send_graph_mail.send_graph_mail')
    @patch('automation_watch.send_graph_mail.acquire_mail_token')
    @patch('automation_watch.send_graph_mail.get_secret')
    def test_token_failure_sends_nothing(self, mock_secret, mock_token, mock_send):
        mock_secret.return_value = self.secret(timedelta(days=3))
        mock_token.side_effect = AuthenticationError("invalid_client")

        with self.assertRaises(AuthenticationError):
            runbook.run(self.config, "user@example.com", "Hello", "", self.credential)
        mock_send.assert_not_called()

    @patch('automation_watch.send_graph_mail.send_graph_mail')
    @patch('automation_watch.send_graph_mail.acquire_mail_token')
    @patch('automation_watch.send_graph_mail.get_secret')
    @patch('automation_watch.send_graph_mail.default_store')
    @patch('automation_watch.send_graph_mail.get_credential')
    def test_main_token_failure_exits(self, mock_credential, mock_store, mock_secret, mock_token, mock_send):
        mock_store.return_value = EnvironmentVariableStore(self.env)
        mock_secret.return_value = self.secret(timedelta(days=3))
        mock_token.side_effect = AuthenticationError("invalid_client")

        with self.assertRaises(SystemExit) as cm:
            runbook.main(["user@example.com", "Hello"])
        self.assertEqual(cm.exception.code, 1)
        mock_send.assert_not_called()

    @patch('automation_watch.send_graph_mail.send_graph_mail')
    @patch('automation_watch.send_graph_mail.get_secret')
    @patch('automation_watch.send_graph_mail.default_store')
    @patch('automation_watch.send_graph_mail.get_credential')
    def test_main_missing_configuration_exits(self, mock_credential, mock_store, mock_secret, mock_send):
        env = dict(self.env)
        del env["From"]
        mock_store.return_value = EnvironmentVariableStore(env)

        with self.assertRaises(SystemExit) as cm:
            runbook.main(["user@example.com"])
        self.assertEqual(cm.exception.code, 1)
        mock_secret.assert_not_called()
        mock_send.assert_not_called()


if __name__ == '__main__':
    unittest.main()
