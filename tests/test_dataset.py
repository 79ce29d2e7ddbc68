import json

import pytest
import requests

from mind_graph.core.dataset import DatasetDownloader, DatasetSpec, TypeMap

MIND_SMALL = DatasetSpec(
    size="small",
    train_archive="MINDsmall_train.zip",
    dev_archive="MINDsmall_dev.zip",
    base_url="https://example.org/release/",
    doc_type_url="https://example.org/crawler/doc_type.json",
)


class DownloadClient:
    """Writes canned bodies to the destination like RetryableHTTPClient.download_to."""

    def __init__(self, bodies):
        self.bodies = bodies
        self.fetched = []

    def download_to(self, url, destination, *, name=None, timeout=None):
        self.fetched.append(url)
        body = self.bodies.get(url)
        if body is None:
            raise requests.HTTPError(f"404 for {url}")
        destination.write_bytes(body)
        return len(body)


def bodies():
    return {
        MIND_SMALL.archive_url("train"): b"train-zip",
        MIND_SMALL.archive_url("dev"): b"dev-zip",
        MIND_SMALL.doc_type_url: json.dumps({"AAGH0ET": "ar", "BBWvkbC": "ss"}).encode(),
    }


def test_download_fetches_both_archives_and_type_map(tmp_path):
    client = DownloadClient(bodies())
    downloader = DatasetDownloader(tmp_path, client)

    type_map = downloader.download(MIND_SMALL)

    assert (tmp_path / "MINDsmall_train.zip").read_bytes() == b"train-zip"
    assert (tmp_path / "MINDsmall_dev.zip").read_bytes() == b"dev-zip"
    assert dict(type_map) == {"AAGH0ET": "ar", "BBWvkbC": "ss"}
    assert downloader.archive_path(MIND_SMALL, "dev") == tmp_path / "MINDsmall_dev.zip"


def test_existing_files_are_never_downloaded_again(tmp_path):
    (tmp_path / "MINDsmall_train.zip").write_bytes(b"stale but present")
    client = DownloadClient(bodies())

    DatasetDownloader(tmp_path, client).download(MIND_SMALL)
    DatasetDownloader(tmp_path, client).download(MIND_SMALL)

    assert (tmp_path / "MINDsmall_train.zip").read_bytes() == b"stale but present"
    assert client.fetched == [MIND_SMALL.archive_url("dev"), MIND_SMALL.doc_type_url]


def test_failed_download_leaves_no_partial_file(tmp_path):
    client = DownloadClient({})

    with pytest.raises(requests.HTTPError):
        DatasetDownloader(tmp_path, client).download_file(MIND_SMALL.archive_url("train"))

    assert list(tmp_path.iterdir()) == []


def test_type_map_must_be_an_object(tmp_path):
    path = tmp_path / "doc_type.json"
    path.write_text("[1, 2]", encoding="utf-8")

    with pytest.raises(ValueError):
        TypeMap.load(path)


def test_unknown_split_is_rejected():
    with pytest.raises(ValueError):
        MIND_SMALL.archive_name("test")
