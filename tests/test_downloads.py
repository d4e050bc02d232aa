import asyncio
import random

from lotgrab.downloads import download_assets, plan_item
from lotgrab.errors import FetchError
from lotgrab.fetch import FetchResponse
from lotgrab.utils import sanitize_name


class ScriptedFetcher:
    """Fetcher returning canned bytes after a per-URL delay."""

    def __init__(self, delays=None, failing=(), broken=()):
        self.delays = delays or {}
        self.failing = set(failing)
        self.broken = set(broken)
        self.calls = []
        self.in_flight = 0
        self.peak = 0

    async def fetch(self, url):
        self.calls.append(url)
        self.in_flight += 1
        self.peak = max(self.peak, self.in_flight)
        try:
            await asyncio.sleep(self.delays.get(url, 0))
            if url in self.failing:
                raise FetchError(url, "HTTP 503", status=503)
            if url in self.broken:
                raise RuntimeError("connection reset")
            return FetchResponse(url=url, status=200, content=url.encode("utf-8"))
        finally:
            self.in_flight -= 1


def test_filenames_follow_list_order_not_completion_order(tmp_path):
    urls = [
        "https://img.test/a/first.jpg",
        "https://img.test/b/second.png?size=large",
        "https://img.test/c/third.webp",
    ]
    fetcher = ScriptedFetcher(delays={urls[0]: 0.03, urls[1]: 0.02, urls[2]: 0.0})

    report = asyncio.run(download_assets({"Prop": urls}, tmp_path, fetcher))

    assert report.downloaded == 3
    folder = tmp_path / "Prop"
    assert (folder / "1-first.jpg").read_bytes() == urls[0].encode()
    assert (folder / "2-second.png").read_bytes() == urls[1].encode()
    assert (folder / "3-third.webp").read_bytes() == urls[2].encode()


def test_existing_files_are_counted_and_not_fetched(tmp_path):
    urls = ["https://img.test/x/one.jpg", "https://img.test/x/two.jpg"]
    folder = tmp_path / "Item"
    folder.mkdir()
    (folder / "1-one.jpg").write_bytes(b"old")
    fetcher = ScriptedFetcher()

    report = asyncio.run(download_assets({"Item": urls}, tmp_path, fetcher))

    assert fetcher.calls == [urls[1]]
    assert report.already_present == 1
    assert report.downloaded == 1
    assert (folder / "1-one.jpg").read_bytes() == b"old"


def test_failures_are_isolated_logged_and_counted(tmp_path, caplog):
    urls = [f"https://img.test/f/{n}.jpg" for n in range(5)]
    fetcher = ScriptedFetcher(failing={urls[1]}, broken={urls[3]})

    with caplog.at_level("ERROR", logger="lotgrab"):
        report = asyncio.run(download_assets({"Lot": urls}, tmp_path, fetcher))

    assert report.downloaded == 3
    assert report.failed == 2
    assert sorted(p.name for p in report.failed_paths) == ["2-1.jpg", "4-3.jpg"]
    assert not (tmp_path / "Lot" / "2-1.jpg").exists()
    assert any("Failed to download" in r.getMessage() and "2-1.jpg" in r.getMessage() for r in caplog.records)
    assert any("4-3.jpg" in r.getMessage() for r in caplog.records)


def test_counts_stay_consistent_under_concurrency(tmp_path):
    rng = random.Random(7)
    items = {
        f"Lot {n}": [f"https://img.test/{n}/{k}.jpg" for k in range(rng.randint(1, 6))]
        for n in range(25)
    }
    all_urls = [url for urls in items.values() for url in urls]
    fetcher = ScriptedFetcher(
        delays={url: rng.random() / 200 for url in all_urls},
        failing={url for url in all_urls if rng.random() < 0.3},
    )

    report = asyncio.run(download_assets(items, tmp_path, fetcher, max_concurrency=None))

    assert report.downloaded + report.failed == len(all_urls)
    assert report.failed == len(fetcher.failing)
    assert report.already_present == 0


def test_concurrency_ceiling_is_respected(tmp_path):
    urls = [f"https://img.test/c/{n}.jpg" for n in range(20)]
    fetcher = ScriptedFetcher(delays={url: 0.005 for url in urls})

    report = asyncio.run(download_assets({"Lot": urls}, tmp_path, fetcher, max_concurrency=3))

    assert report.downloaded == 20
    assert fetcher.peak <= 3


def test_unbounded_fan_out_starts_every_download(tmp_path):
    urls = [f"https://img.test/u/{n}.jpg" for n in range(10)]
    fetcher = ScriptedFetcher(delays={url: 0.01 for url in urls})

    asyncio.run(download_assets({"Lot": urls}, tmp_path, fetcher, max_concurrency=0))

    assert fetcher.peak == 10


def test_item_folders_use_sanitized_names(tmp_path):
    name = 'Lot 7: "Rare" Item/Prop'
    fetcher = ScriptedFetcher()

    asyncio.run(download_assets({name: ["https://img.test/r/p.jpg"]}, tmp_path, fetcher))

    folder = tmp_path / sanitize_name(name)
    assert folder.parent == tmp_path
    assert (folder / "1-p.jpg").is_file()


def test_plan_item_numbers_from_one(tmp_path):
    tasks = plan_item("x", ["https://h/a.jpg", "https://h/b.jpg"], tmp_path)
    assert [t.destination.name for t in tasks] == ["1-a.jpg", "2-b.jpg"]
    assert all(t.item_name == "x" for t in tasks)


def test_unparsable_asset_url_is_counted_as_failed(tmp_path, caplog):
    fetcher = ScriptedFetcher()
    items = {"Good": ["https://img.test/ok.jpg"], "Bad": ["http://[broken/x.jpg"]}

    with caplog.at_level("ERROR", logger="lotgrab"):
        report = asyncio.run(download_assets(items, tmp_path, fetcher))

    assert report.downloaded == 1
    assert report.failed == 1
    assert fetcher.calls == ["https://img.test/ok.jpg"]
    assert (tmp_path / "Good" / "1-ok.jpg").is_file()
    assert (tmp_path / "Bad").is_dir()
    assert any("http://[broken/x.jpg" in r.getMessage() for r in caplog.records)


def test_plan_item_skips_unparsable_urls_and_keeps_positions(tmp_path):
    tasks = plan_item("x", ["http://[broken/a.jpg", "https://h/b.jpg"], tmp_path)
    assert [t.destination.name for t in tasks] == ["2-b.jpg"]


def test_folder_creation_failure_fails_that_items_assets_only(tmp_path, caplog):
    (tmp_path / "Blocked").write_bytes(b"not a folder")
    fetcher = ScriptedFetcher()
    items = {
        "Blocked": ["https://img.test/b/1.jpg", "https://img.test/b/2.jpg"],
        "Open": ["https://img.test/o/1.jpg"],
    }

    with caplog.at_level("ERROR", logger="lotgrab"):
        report = asyncio.run(download_assets(items, tmp_path, fetcher))

    assert report.failed == 2
    assert report.downloaded == 1
    assert sorted(p.name for p in report.failed_paths) == ["1-1.jpg", "2-2.jpg"]
    assert fetcher.calls == ["https://img.test/o/1.jpg"]
    assert any("Cannot create folder" in r.getMessage() for r in caplog.records)
