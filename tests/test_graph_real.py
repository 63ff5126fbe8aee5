"""Tests for the Graph mail service: helpers, and the service against a mocked SDK client."""

import tempfile
import unittest
from pathlib import Path
from unittest import mock

from msgraph.generated.models.body_type import BodyType
from msgraph.generated.models.importance import Importance as GraphSDKImportance
from msgraph.generated.models.mail_folder import MailFolder as GraphSDKMailFolder
from msgraph.generated.models.mail_folder_collection_response import MailFolderCollectionResponse
from msgraph.generated.models.message import Message as GraphSDKMessage
from msgraph.generated.models.message_collection_response import MessageCollectionResponse
from msgraph.generated.models.o_data_errors.main_error import MainError
from msgraph.generated.models.o_data_errors.o_data_error import ODataError

from mailfiler.exceptions import AttachmentError, MailboxAccessError, SendError
from mailfiler.mail_provider import graph_real
from mailfiler.mail_provider.models import Importance, MailMessage


def _odata_error(status: int, code: str) -> ODataError:
    error = ODataError()
    error.response_status_code = status
    error.error = MainError(code=code, message=f"{code} happened")
    return error


class TestErrorTranslation(unittest.TestCase):
    def test_forbidden_is_mailbox_access(self):
        err = graph_real._translate_error(_odata_error(403, "ErrorAccessDenied"), "find_child_folders", "a@b.com")
        self.assertIsInstance(err, MailboxAccessError)
        self.assertEqual(err.context["code"], "ErrorAccessDenied")
        self.assertEqual(err.context["mailbox"], "a@b.com")

    def test_missing_root_is_mailbox_access(self):
        err = graph_real._translate_error(_odata_error(404, "ErrorItemNotFound"), "get_root_folder", "x@b.com")
        self.assertIsInstance(err, MailboxAccessError)

    def test_other_failures_are_send_errors(self):
        err = graph_real._translate_error(_odata_error(400, "ErrorInvalidRecipients"), "send_mail", "a@b.com")
        self.assertIsInstance(err, SendError)
        self.assertIn("ErrorInvalidRecipients happened", str(err))


class TestConversions(unittest.TestCase):
    def test_escape_quotes(self):
        self.assertEqual(graph_real._escape_odata("Bob's"), "Bob''s")

    def test_convert_folder(self):
        folder = graph_real._convert_sdk_folder(
            GraphSDKMailFolder(id="f1", display_name="Project", parent_folder_id="p1")
        )
        self.assertEqual((folder.id, folder.display_name, folder.parent_id), ("f1", "Project", "p1"))

    def test_build_message(self):
        message = graph_real._build_sdk_message(
            MailMessage(
                subject="Hi",
                body="<b>x</b>",
                body_type="html",
                sender="a@b.com",
                to=["x@y.com", "z@y.com"],
                bcc=["audit@b.com"],
                importance=Importance.LOW,
            )
        )
        self.assertEqual(message.body.content_type, BodyType.Html)
        self.assertEqual([r.email_address.address for r in message.to_recipients], ["x@y.com", "z@y.com"])
        self.assertEqual(message.cc_recipients, [])
        self.assertEqual(message.bcc_recipients[0].email_address.address, "audit@b.com")
        self.assertEqual(message.importance, GraphSDKImportance.Low)

    def test_file_attachment(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "report.pdf"
            path.write_bytes(b"%PDF")
            attachment = graph_real._build_file_attachment(path)
            self.assertEqual(attachment.name, "report.pdf")
            self.assertEqual(attachment.content_type, "application/pdf")
            self.assertEqual(attachment.content_bytes, b"%PDF")

    def test_oversized_attachment_rejected(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "big.bin"
            path.write_bytes(b"\0" * (graph_real.MAX_INLINE_ATTACHMENT_BYTES + 1))
            with self.assertRaises(AttachmentError):
                graph_real._build_file_attachment(path)



class TestGraphMailService(unittest.TestCase):
    """GraphMailService against a mocked GraphServiceClient; request builders are AsyncMocks."""

    def setUp(self):
        client_patch = mock.patch.object(graph_real, "GraphServiceClient")
        self.client = client_patch.start().return_value
        self.addCleanup(client_patch.stop)
        time_patch = mock.patch.object(graph_real, "time")
        self.time = time_patch.start()
        self.addCleanup(time_patch.stop)

        self.service = graph_real.GraphMailService(
            mock.Mock(),
            scopes=["Mail.Send"],
            sent_lookup_attempts=3,
            sent_lookup_delay=0.5,
        )
        self.addCleanup(self.service.close)
        self.user = self.client.users.by_user_id.return_value
        self.folder = self.user.mail_folders.by_mail_folder_id.return_value
        self.message = self.user.messages.by_message_id.return_value

    def _attachment(self, name: str, content: bytes) -> Path:
        tmp = tempfile.TemporaryDirectory()
        self.addCleanup(tmp.cleanup)
        path = Path(tmp.name) / name
        path.write_bytes(content)
        return path

    def test_root_folder(self):
        self.folder.get = mock.AsyncMock(return_value=GraphSDKMailFolder(id="root-1", display_name="Top"))
        root = self.service.get_root_folder("a@b.com")
        self.assertEqual(root.id, "root-1")
        self.assertEqual(root.well_known_name, "msgfolderroot")
        self.client.users.by_user_id.assert_called_with("a@b.com")
        self.user.mail_folders.by_mail_folder_id.assert_called_with("msgfolderroot")

    def test_unknown_mailbox_root_is_access_error(self):
        self.folder.get = mock.AsyncMock(side_effect=_odata_error(404, "ErrorItemNotFound"))
        with self.assertRaises(MailboxAccessError) as ctx:
            self.service.get_root_folder("nobody@b.com")
        self.assertEqual(ctx.exception.context["operation"], "get_root_folder")
        self.assertEqual(ctx.exception.context["status"], 404)

    def test_find_child_folders_keeps_exact_case_matches(self):
        # Graph's displayName filter ignores case
        self.folder.child_folders.get = mock.AsyncMock(
            return_value=MailFolderCollectionResponse(
                value=[
                    GraphSDKMailFolder(id="f1", display_name="Project", parent_folder_id="p1"),
                    GraphSDKMailFolder(id="f2", display_name="project", parent_folder_id="p1"),
                ]
            )
        )
        matches = self.service.find_child_folders("a@b.com", "p1", "Project")

        self.assertEqual([f.id for f in matches], ["f1"])
        self.user.mail_folders.by_mail_folder_id.assert_called_with("p1")
        config = self.folder.child_folders.get.await_args.kwargs["request_configuration"]
        self.assertEqual(config.query_parameters.filter, "displayName eq 'Project'")

    def test_find_child_folders_escapes_quotes(self):
        self.folder.child_folders.get = mock.AsyncMock(return_value=MailFolderCollectionResponse(value=[]))
        self.assertEqual(self.service.find_child_folders("a@b.com", "p1", "Bob's"), [])
        config = self.folder.child_folders.get.await_args.kwargs["request_configuration"]
        self.assertEqual(config.query_parameters.filter, "displayName eq 'Bob''s'")

    def test_save_message_posts_attachments(self):
        self.folder.messages.post = mock.AsyncMock(return_value=GraphSDKMessage(id="m1"))
        self.message.attachments.post = mock.AsyncMock()
        pdf = self._attachment("report.pdf", b"%PDF")

        message_id = self.service.save_message(
            "a@b.com",
            MailMessage(subject="Hi", sender="a@b.com", to=["x@y.com"]),
            [pdf],
            folder_id="f1",
        )

        self.assertEqual(message_id, "m1")
        self.user.mail_folders.by_mail_folder_id.assert_called_with("f1")
        self.user.messages.by_message_id.assert_called_with("m1")
        self.message.attachments.post.assert_awaited_once()
        posted = self.message.attachments.post.await_args.args[0]
        self.assertEqual((posted.name, posted.content_bytes), ("report.pdf", b"%PDF"))

    def test_save_message_defaults_to_drafts(self):
        self.folder.messages.post = mock.AsyncMock(return_value=GraphSDKMessage(id="m1"))
        self.service.save_message("a@b.com", MailMessage(subject="Hi", sender="a@b.com", to=["x@y.com"]), [])
        self.user.mail_folders.by_mail_folder_id.assert_called_with("drafts")

    def test_failed_attachment_discards_draft(self):
        self.folder.messages.post = mock.AsyncMock(return_value=GraphSDKMessage(id="m1"))
        self.message.attachments.post = mock.AsyncMock(side_effect=_odata_error(500, "ErrorInternalServerError"))
        self.message.delete = mock.AsyncMock()
        pdf = self._attachment("report.pdf", b"%PDF")

        with self.assertRaises(SendError) as ctx:
            self.service.save_message(
                "a@b.com",
                MailMessage(subject="Hi", sender="a@b.com", to=["x@y.com"]),
                [pdf],
                folder_id="f1",
            )

        self.assertEqual(ctx.exception.context["message_id"], "m1")
        self.message.delete.assert_awaited_once()
        self.user.messages.by_message_id.assert_called_with("m1")

    def test_send_saved_message_files_copy(self):
        self.message.get = mock.AsyncMock(return_value=GraphSDKMessage(id="m1", internet_message_id="<abc@b.com>"))
        self.message.send.post = mock.AsyncMock()
        self.message.move.post = mock.AsyncMock()
        self.folder.messages.get = mock.AsyncMock(
            side_effect=[
                MessageCollectionResponse(value=[]),
                MessageCollectionResponse(value=[GraphSDKMessage(id="sent-1")]),
            ]
        )

        self.service.send_saved_message("a@b.com", "m1", copy_folder_id="f1")

        self.message.send.post.assert_awaited_once()
        self.user.mail_folders.by_mail_folder_id.assert_called_with("sentitems")
        config = self.folder.messages.get.await_args.kwargs["request_configuration"]
        self.assertEqual(config.query_parameters.filter, "internetMessageId eq '<abc@b.com>'")
        self.user.messages.by_message_id.assert_called_with("sent-1")
        self.assertEqual(self.message.move.post.await_args.args[0].destination_id, "f1")
        self.time.sleep.assert_called_once_with(0.5)

    def test_copy_never_appears(self):
        self.message.get = mock.AsyncMock(return_value=GraphSDKMessage(id="m1", internet_message_id="<abc@b.com>"))
        self.message.send.post = mock.AsyncMock()
        self.message.move.post = mock.AsyncMock()
        self.folder.messages.get = mock.AsyncMock(return_value=MessageCollectionResponse(value=[]))

        with self.assertRaises(SendError) as ctx:
            self.service.send_saved_message("a@b.com", "m1", copy_folder_id="f1")

        self.assertTrue(ctx.exception.context["delivered"])
        self.assertEqual(self.folder.messages.get.await_count, 3)
        # No wait after the last lookup
        self.assertEqual(self.time.sleep.call_count, 2)
        self.message.move.post.assert_not_awaited()

    def test_send_without_folder_uses_send_mail(self):
        self.user.send_mail.post = mock.AsyncMock()
        self.service.send_and_save_copy("a@b.com", MailMessage(subject="Hi", sender="a@b.com", to=["x@y.com"]))
        body = self.user.send_mail.post.await_args.kwargs["body"]
        self.assertTrue(body.save_to_sent_items)
        self.assertEqual(body.message.subject, "Hi")


if __name__ == "__main__":
    unittest.main()
