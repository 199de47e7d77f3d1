import io
import time
import zipfile

import pytest
from PIL import Image

from conftest import make_image
from kagami.conversion import worker as worker_module
from kagami.conversion.models import ConversionOptions, ImageFormat, JobStatus, ResizeIntent
from kagami.errors import NoCompletedJobs, OutputNotReady
from kagami.session import ConverterSession, SourceFile, is_accepted


@pytest.fixture
def session():
    with ConverterSession(ConversionOptions(format="webp", quality=80)) as s:
        yield s


def _png(name, size=(800, 600)):
    return SourceFile(name=name, data=make_image(size=size), mime_type="image/png")


def test_is_accepted():
    assert is_accepted("image/svg+xml")
    assert is_accepted("IMAGE/JPEG")
    assert not is_accepted("image/tiff")
    assert not is_accepted("")


def test_add_files_filters_declared_type(session):
    ids = session.add_files([_png("a.png"), SourceFile("doc.pdf", b"%PDF", "application/pdf")])
    assert len(ids) == 1
    snap = session.snapshots()[0]
    assert snap.filename == "a.png"
    assert snap.status == JobStatus.PENDING
    assert snap.progress == 0


def test_convert_all_end_to_end(session):
    session.set_options(ConversionOptions(format="jpeg", quality=70, resize=ResizeIntent(target_width=400)))
    ids = session.add_files([_png("photo.png"), _png("photo.png"), SourceFile("bad.png", b"nope", "image/png")])
    session.convert_all()
    assert session.is_converting
    assert session.wait(timeout=30)
    assert not session.is_converting

    statuses = [session.get_job(i).status for i in ids]
    assert statuses == [JobStatus.COMPLETED, JobStatus.COMPLETED, JobStatus.ERROR]
    assert session.get_job(ids[2]).error_message

    data, filename = session.download(ids[0])
    assert filename == "photo.jpg"
    assert Image.open(io.BytesIO(data)).size == (400, 300)

    summary = session.summary()
    assert (summary.total, summary.completed, summary.errored, summary.pending) == (3, 2, 1, 0)
    assert summary.output_bytes == sum(session.get_job(i).output_size for i in ids[:2])
    assert summary.bytes_saved == summary.source_bytes - summary.output_bytes

    archive = session.download_all()
    with zipfile.ZipFile(io.BytesIO(archive.data)) as zf:
        assert sorted(zf.namelist()) == ["photo.jpg", "photo_1.jpg"]
    assert archive.filename.startswith("kagami_") and archive.filename.endswith(".zip")


def test_download_before_completion(session):
    (job_id,) = session.add_files([_png("a.png")])
    with pytest.raises(OutputNotReady):
        session.download(job_id)
    with pytest.raises(NoCompletedJobs):
        session.download_all()


def test_remove_before_dispatch_is_never_converted(stub_worker):
    with ConverterSession(worker=stub_worker) as session:
        a, b, c = session.add_files([_png("a.png", (8, 8)), _png("b.png", (8, 8)), _png("c.png", (8, 8))])
        session.convert_all()
        session.remove(b)
        assert session.get_job(b) is None
        assert session.queue.backlog == [c]
    assert stub_worker.closed


def test_remove_during_processing_releases_buffers(session):
    a, b = session.add_files([_png("a.png"), _png("b.png")])
    session.convert_all()
    job_a = session.get_job(a)
    session.remove(a)
    assert job_a.source_bytes is None
    assert session.wait(timeout=30)
    assert session.get_job(a) is None
    assert session.get_job(b).status == JobStatus.COMPLETED
    assert [s.job_id for s in session.snapshots()] == [b]


def test_convert_one_reconverts_with_new_options(session):
    (job_id,) = session.add_files([_png("a.png", (100, 50))])
    session.convert_all()
    session.wait(timeout=30)
    assert session.get_job(job_id).output_format is ImageFormat.WEBP

    session.set_options(ConversionOptions(format="png", resize=ResizeIntent(target_height=10)))
    assert session.convert_one(job_id)
    session.wait(timeout=30)
    job = session.get_job(job_id)
    assert job.status == JobStatus.COMPLETED
    assert (job.width, job.height) == (20, 10)
    assert session.download(job_id)[1] == "a.png"
    assert not session.convert_one("unknown")


def test_clear_all(session):
    session.add_files([_png("a.png"), _png("b.png")])
    session.clear_all()
    assert session.snapshots() == []
    assert session.summary().total == 0


def test_poll_does_not_block(session):
    session.add_files([_png("a.png", (10, 10))])
    session.convert_all()
    applied = 0
    for _ in range(2000):
        applied += session.poll()
        if not session.is_converting:
            break
        session.queue.process_next_event(timeout=0.01)
    assert not session.is_converting
    assert session.summary().completed == 1


def test_timeout_only_fails_the_hung_job(monkeypatch):
    real_convert = worker_module.convert

    def slow_convert(source_bytes, options, on_progress=None):
        if source_bytes == b"hangs":
            time.sleep(1.0)
        return real_convert(source_bytes, options, on_progress=on_progress)

    monkeypatch.setattr(worker_module, "convert", slow_convert)
    with ConverterSession(ConversionOptions(format="png"), job_timeout=0.3) as session:
        slow, healthy = session.add_files([
            SourceFile("slow.png", b"hangs", "image/png"),
            _png("ok.png", (4, 4)),
        ])
        session.convert_all()
        assert session.wait(timeout=30)
        assert session.get_job(slow).status == JobStatus.ERROR
        assert "Timed out" in session.get_job(slow).error_message
        assert session.get_job(healthy).status == JobStatus.COMPLETED
