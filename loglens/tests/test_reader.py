import io
import zipfile
from pathlib import Path

import pytest

from loglens.config import Settings
from loglens.reader import ArchiveError, RawPart, combine_logs, write_combined


def test_directory_mode_orders_history_descending_then_current(log_folder):
    result = combine_logs(log_folder)

    assert [part.label for part in result.parts] == [
        "log.history2.txt.zip::log.txt",
        "log.history1.txt.zip::log.txt",
        "log.txt",
    ]
    assert result.warnings == []
    assert result.directory == log_folder.resolve()
    content = result.content
    assert content.index("older history") < content.index("newer history") < content.index("current run")


def test_history_numbers_sort_numerically(tmp_path, history_zip):
    for number in (2, 10, 1):
        (tmp_path / f"log.history{number}.txt.zip").write_bytes(history_zip(f"[01-01 00:00:00.000][I] part {number}"))

    result = combine_logs(tmp_path)

    assert [part.label.split("::")[0] for part in result.parts] == [
        "log.history10.txt.zip",
        "log.history2.txt.zip",
        "log.history1.txt.zip",
    ]


def test_parts_are_wrapped_with_delimiters(log_folder):
    result = combine_logs(log_folder)

    expected = "\n".join(
        f"\n===== BEGIN PART: {part.label} =====\n{part.content}\n===== END PART: {part.label} =====\n"
        for part in result.parts
    )
    assert result.content == expected


def test_selected_file_uses_its_folder(log_folder):
    result = combine_logs(log_folder / "log.txt")

    assert len(result.parts) == 3


def test_missing_current_log_is_tolerated(tmp_path, history_zip):
    (tmp_path / "log.history1.txt.zip").write_bytes(history_zip("[01-01 00:00:00.000][I] only history"))

    result = combine_logs(tmp_path)

    assert [part.label for part in result.parts] == ["log.history1.txt.zip::log.txt"]
    assert result.warnings == []


def test_empty_folder_is_no_data(tmp_path):
    result = combine_logs(tmp_path)

    assert result.is_empty
    assert result.content == ""


def test_corrupt_history_is_skipped_with_warning(log_folder, caplog):
    (log_folder / "log.history3.txt.zip").write_bytes(b"definitely not a zip")

    with caplog.at_level("WARNING", logger="loglens.reader"):
        result = combine_logs(log_folder)

    assert len(result.parts) == 3
    assert len(result.warnings) == 1
    assert "log.history3.txt.zip" in result.warnings[0]
    assert "log.history3.txt.zip" in caplog.text


def test_unreadable_current_log_is_skipped_with_warning(log_folder, monkeypatch):
    real_read_bytes = Path.read_bytes

    def read_bytes(self):
        if self.name == "log.txt":
            raise PermissionError("access denied")
        return real_read_bytes(self)

    monkeypatch.setattr(Path, "read_bytes", read_bytes)

    result = combine_logs(log_folder)

    assert [part.label for part in result.parts] == [
        "log.history2.txt.zip::log.txt",
        "log.history1.txt.zip::log.txt",
    ]
    assert result.warnings == ["Skipped log.txt: access denied"]


def test_history_without_log_entry_is_skipped(tmp_path):
    with zipfile.ZipFile(tmp_path / "log.history1.txt.zip", "w") as archive:
        archive.writestr("other.txt", "nothing")

    result = combine_logs(tmp_path)

    assert result.parts == []
    assert "no log.txt entry" in result.warnings[0]


def test_archive_of_archives(tmp_path, history_zip):
    bundle = tmp_path / "bundle.zip"
    with zipfile.ZipFile(bundle, "w") as archive:
        archive.writestr("log.txt", "[01-03 00:00:00.000][I] current")
        archive.writestr("log.history1.txt.zip", history_zip("[01-02 00:00:00.000][I] one"))
        archive.writestr("log.history2.txt.zip", history_zip("[01-01 00:00:00.000][I] two"))
        archive.writestr("log.history3.txt.zip", b"broken")

    result = combine_logs(bundle)

    assert [part.label for part in result.parts] == [
        "log.history2.txt.zip::log.txt",
        "log.history1.txt.zip::log.txt",
        "log.txt",
    ]
    assert len(result.warnings) == 1
    assert "bundle.zip::log.history3.txt.zip" in result.warnings[0]


def test_explicit_archive_overrides_folder_scan(log_folder, tmp_path):
    bundle = tmp_path / "elsewhere.zip"
    with zipfile.ZipFile(bundle, "w") as archive:
        archive.writestr("log.txt", "[01-03 00:00:00.000][I] from bundle")

    result = combine_logs(log_folder, archive=bundle)

    assert [part.content for part in result.parts] == ["[01-03 00:00:00.000][I] from bundle"]


def test_unreadable_explicit_archive_raises(tmp_path):
    bogus = tmp_path / "bogus.zip"
    bogus.write_bytes(b"not a zip at all")

    with pytest.raises(ArchiveError):
        combine_logs(bogus)


def test_missing_target_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        combine_logs(tmp_path / "missing")


def test_custom_current_log_name(tmp_path, history_zip):
    settings = Settings(current_log="game.log")
    (tmp_path / "game.log").write_text("[01-01 00:00:00.000][I] custom", encoding="utf-8")
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        archive.writestr("game.log", "[01-01 00:00:00.000][I] older")
    (tmp_path / "game.history4.log.zip").write_bytes(buffer.getvalue())
    (tmp_path / "log.history1.txt.zip").write_bytes(history_zip("ignored"))

    result = combine_logs(tmp_path, settings=settings)

    assert [part.label for part in result.parts] == ["game.history4.log.zip::game.log", "game.log"]


def test_write_combined_keeps_line_endings(tmp_path):
    content = RawPart(label="log.txt", content="a\r\nb").wrapped()

    path = write_combined(content, tmp_path, Settings(output_name="out.txt"))

    assert path == tmp_path / "out.txt"
    assert Path(path).read_bytes() == content.encode("utf-8")
