# tests/test_dbox.py
import pytest
import requests
from datetime import datetime, timezone
from unittest.mock import patch, MagicMock, ANY
from dropbox.exceptions import ApiError
from dropbox.files import ListFolderResult, FileMetadata, FolderMetadata

from docportal.dbox import DropboxClient
from docportal.exceptions import DocumentNotFound, StoreUnavailable


def _file(name, size=10, folder="/HR Documents"):
    return FileMetadata(
        name=name.split("/")[-1],
        path_display=f"{folder}/{name}",
        size=size,
        server_modified=datetime(2024, 5, 1, 9, 30),
    )


def _not_found_error(kind):
    """Builds an ApiError whose union reports a not_found lookup for `kind`."""
    error = MagicMock()
    getattr(error, f"is_{kind}").return_value = True
    getattr(error, f"get_{kind}").return_value.is_not_found.return_value = True
    return ApiError("request-id", error, None, None)


@patch("docportal.dbox.dropbox.Dropbox")
def test_dropbox_client_init_success(MockDropbox):
    client = DropboxClient("key", "secret", "token", folder="HR Documents/")

    MockDropbox.assert_called_once_with(
        app_key="key",
        app_secret="secret",
        oauth2_refresh_token="token",
        timeout=30,
        max_retries_on_error=0,
        max_retries_on_rate_limit=0,
    )
    assert client.dbx == MockDropbox.return_value
    assert client.folder == "/HR Documents"


@patch("docportal.dbox.dropbox.Dropbox", side_effect=Exception("Auth failed"))
def test_dropbox_client_init_failure(MockDropbox):
    with pytest.raises(Exception, match="Auth failed"):
        DropboxClient("key", "secret", "token", folder="/HR Documents")


@pytest.fixture
def client():
    """Creates a client instance with a mocked SDK."""
    with patch("docportal.dbox.dropbox.Dropbox") as MockDropbox:
        mock_dbx_instance = MockDropbox.return_value
        client_instance = DropboxClient("key", "secret", "token", folder="/HR Documents", chunk_size=4)
        mock_dbx_instance.reset_mock()
        yield client_instance


def test_list_files_success_single_page(client):
    mock_result = ListFolderResult(
        entries=[_file("test.pdf", 42), FolderMetadata(name="Archive")], has_more=False
    )
    client.dbx.files_list_folder.return_value = mock_result

    files = client.list_files()

    client.dbx.files_list_folder.assert_called_once_with("/HR Documents", recursive=True)
    client.dbx.files_list_folder_continue.assert_not_called()
    assert len(files) == 1
    assert files[0].name == "test.pdf"
    assert files[0].size == 42
    assert files[0].uploaded_at == datetime(2024, 5, 1, 9, 30, tzinfo=timezone.utc)
    assert files[0].url == "https://www.dropbox.com/home/HR%20Documents/test.pdf"


def test_list_files_with_pagination(client):
    mock_result_page1 = ListFolderResult(
        entries=[_file("file1.pdf")], has_more=True, cursor="cursor123"
    )
    mock_result_page2 = ListFolderResult(entries=[_file("file2.pdf")], has_more=False)
    client.dbx.files_list_folder.return_value = mock_result_page1
    client.dbx.files_list_folder_continue.return_value = mock_result_page2

    files = client.list_files()

    client.dbx.files_list_folder_continue.assert_called_once_with("cursor123")
    assert [f.name for f in files] == ["file1.pdf", "file2.pdf"]


def test_list_files_includes_files_in_sub_folders(client):
    client.dbx.files_list_folder.return_value = ListFolderResult(
        entries=[
            FolderMetadata(name="2024", path_display="/HR Documents/2024"),
            _file("2024/handbook.pdf", 7),
            _file("policy.pdf"),
        ],
        has_more=False,
    )

    files = client.list_files()

    assert [f.name for f in files] == ["2024/handbook.pdf", "policy.pdf"]
    assert files[0].id == "2024/handbook.pdf"
    assert files[0].size == 7
    assert files[0].url == "https://www.dropbox.com/home/HR%20Documents/2024/handbook.pdf"


def test_listed_nested_name_addresses_the_same_file(client):
    client.dbx.files_list_folder.return_value = ListFolderResult(
        entries=[_file("2024/handbook.pdf")], has_more=False
    )
    client.dbx.files_download.return_value = (MagicMock(), MagicMock(content=b"data"))

    [record] = client.list_files()
    client.download_file(record.name)
    client.delete_file(record.name)

    client.dbx.files_download.assert_called_once_with("/HR Documents/2024/handbook.pdf")
    client.dbx.files_delete_v2.assert_called_once_with("/HR Documents/2024/handbook.pdf")


def test_list_files_in_root_folder_uses_path_relative_to_root():
    with patch("docportal.dbox.dropbox.Dropbox") as MockDropbox:
        client = DropboxClient("key", "secret", "token", folder="")
        MockDropbox.return_value.files_list_folder.return_value = ListFolderResult(
            entries=[_file("2024/handbook.pdf", folder="")], has_more=False
        )

        files = client.list_files()

    MockDropbox.return_value.files_list_folder.assert_called_once_with("", recursive=True)
    assert [f.name for f in files] == ["2024/handbook.pdf"]


def test_list_files_api_error_raises_store_unavailable(client):
    client.dbx.files_list_folder.side_effect = ApiError(None, None, None, None)

    with pytest.raises(StoreUnavailable):
        client.list_files()


def test_list_files_failure_on_second_page_returns_nothing(client):
    client.dbx.files_list_folder.return_value = ListFolderResult(
        entries=[_file("file1.pdf")], has_more=True, cursor="cursor123"
    )
    client.dbx.files_list_folder_continue.side_effect = requests.exceptions.ConnectionError("reset")

    with pytest.raises(StoreUnavailable):
        client.list_files()


def test_upload_file_single_request(client):
    url = client.upload_file("a.pdf", b"abc")

    client.dbx.files_upload.assert_called_once_with(b"abc", "/HR Documents/a.pdf", mode=ANY)
    client.dbx.files_upload_session_start.assert_not_called()
    assert url == "https://www.dropbox.com/home/HR%20Documents/a.pdf"


def test_upload_file_chunked(client):
    client.dbx.files_upload_session_start.return_value.session_id = "session-1"

    client.upload_file("big.pdf", b"0123456789")

    client.dbx.files_upload_session_start.assert_called_once_with(b"0123")
    client.dbx.files_upload_session_append_v2.assert_called_once_with(b"4567", ANY)
    finish_args = client.dbx.files_upload_session_finish.call_args.args
    assert finish_args[0] == b"89"
    assert finish_args[1].session_id == "session-1"
    assert finish_args[1].offset == 8
    assert finish_args[2].path == "/HR Documents/big.pdf"


def test_upload_file_exactly_one_chunk(client):
    client.dbx.files_upload_session_start.return_value.session_id = "session-1"

    client.upload_file("four.bin", b"abcd")

    client.dbx.files_upload_session_append_v2.assert_not_called()
    assert client.dbx.files_upload_session_finish.call_args.args[0] == b""


def test_upload_file_api_error(client):
    client.dbx.files_upload.side_effect = ApiError(None, None, None, None)

    with pytest.raises(StoreUnavailable):
        client.upload_file("a.pdf", b"abc")


def test_download_file_success(client):
    client.dbx.files_download.return_value = (MagicMock(), MagicMock(content=b"file_content"))

    assert client.download_file("a.pdf") == b"file_content"
    client.dbx.files_download.assert_called_once_with("/HR Documents/a.pdf")


def test_download_file_not_found(client):
    client.dbx.files_download.side_effect = _not_found_error("path")

    with pytest.raises(DocumentNotFound):
        client.download_file("missing.pdf")


def test_delete_file_success(client):
    client.delete_file("a.pdf")

    client.dbx.files_delete_v2.assert_called_once_with("/HR Documents/a.pdf")


def test_delete_file_not_found_is_a_noop(client):
    client.dbx.files_delete_v2.side_effect = _not_found_error("path_lookup")

    client.delete_file("missing.pdf")  # Should not raise


def test_delete_file_api_error(client):
    error = MagicMock()
    error.is_path_lookup.return_value = False
    client.dbx.files_delete_v2.side_effect = ApiError("request-id", error, None, None)

    with pytest.raises(StoreUnavailable):
        client.delete_file("a.pdf")


def test_verify_root_folder_skips_api_call():
    with patch("docportal.dbox.dropbox.Dropbox") as MockDropbox:
        client = DropboxClient("key", "secret", "token", folder="/")
        client.verify_container_exists()

    assert client.folder == ""
    MockDropbox.return_value.files_get_metadata.assert_not_called()


def test_verify_missing_folder_raises_store_unavailable(client):
    client.dbx.files_get_metadata.side_effect = _not_found_error("path")

    with pytest.raises(StoreUnavailable):
        client.verify_container_exists()
