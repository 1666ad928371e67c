"""Tests for the TransformDispatcher and its per-MIME transforms."""

from __future__ import annotations

import asyncio
import shutil
from pathlib import Path
from types import SimpleNamespace

import pytest

from cdnforge.core.errors import (
    AssetReadError,
    ScriptSyntaxError,
    ToolError,
    UnsupportedAssetError,
)
from cdnforge.core.publisher import Publisher
from cdnforge.core.resolver import AssetResolver, artifact_name_for
from cdnforge.core.transforms import TransformDispatcher, minify_script, transform_kind_for
from cdnforge.models.assets import BundleAsset, SingleAsset, TransformKind
from cdnforge.models.publishing import PublishOutcome, PublishStatus
from tests.support import FIXED_MTIME_NS, FakeStorage, set_mtime


class RecordingSubresources:
    """Stands in for the orchestrator's sub-resource pipeline."""

    def __init__(self, status: PublishStatus = PublishStatus.PUBLISHED) -> None:
        self.status = status
        self.calls: list[SingleAsset] = []

    async def __call__(self, reference: SingleAsset) -> PublishOutcome:
        self.calls.append(reference)
        return PublishOutcome(
            reference=reference, artifact_name=artifact_name_for(reference), status=self.status
        )


@pytest.fixture
def subresources() -> RecordingSubresources:
    return RecordingSubresources()


@pytest.fixture
def make_dispatcher(public_dir: Path, storage: FakeStorage, fake_tools: SimpleNamespace):
    def _factory(
        subresources: RecordingSubresources | None = None, **overrides: str
    ) -> tuple[TransformDispatcher, AssetResolver]:
        resolver = AssetResolver(public_dir)
        publisher = Publisher(storage, max_attempts=3, initial_wait=0.0, max_wait=0.0)
        options = {
            "optipng_binary": str(fake_tools.optipng),
            "jpegtran_binary": str(fake_tools.jpegtran),
        }
        options.update(overrides)
        dispatcher = TransformDispatcher(
            resolver,
            publisher,
            publish_subresource=subresources or RecordingSubresources(),
            **options,
        )
        return dispatcher, resolver

    return _factory


def _dispatch(dispatcher: TransformDispatcher, resolver: AssetResolver, literal) -> PublishOutcome:
    reference = SingleAsset(path=literal) if isinstance(literal, str) else BundleAsset(paths=tuple(literal))
    return asyncio.run(dispatcher.dispatch(resolver.resolve(reference)))


class TestTransformKind:
    @pytest.mark.parametrize(
        ("mime", "kind"),
        [
            ("application/javascript", TransformKind.SCRIPT),
            ("text/css", TransformKind.STYLESHEET),
            ("image/png", TransformKind.RASTER_PNG),
            ("image/jpeg", TransformKind.RASTER_JPEG),
            ("image/gif", TransformKind.PASSTHROUGH),
            ("font/woff2", TransformKind.PASSTHROUGH),
        ],
    )
    def test_kind(self, mime: str, kind: TransformKind):
        assert transform_kind_for(mime) is kind


class TestScripts:
    def test_minify_mangles_locals_only(self):
        out = minify_script(
            "function add(first, second) { var total = first + second; return total; }",
            name="add.js",
        )
        assert "add" in out
        assert "total" not in out
        assert "second" not in out

    def test_syntax_error(self):
        with pytest.raises(ScriptSyntaxError, match="broken.js"):
            minify_script("var x = ;", name="broken.js")

    def test_syntax_error_position(self):
        with pytest.raises(ScriptSyntaxError) as excinfo:
            minify_script("var a = 1;\nvar b = ;\n", name="broken.js")
        assert excinfo.value.line == 2

    def test_es5_only(self):
        with pytest.raises(ScriptSyntaxError, match="modern.js"):
            minify_script("const f = () => 1;\n", name="modern.js")

    def test_bundle_is_concatenated_and_minified(self, make_dispatcher, storage: FakeStorage):
        dispatcher, resolver = make_dispatcher()
        outcome = _dispatch(dispatcher, resolver, ["/js/a.js", "/js/b.js"])
        assert outcome.status is PublishStatus.PUBLISHED
        text = storage.objects["a.js+b.js"].text
        assert text.index("greeting") < text.index('greet("world")')
        assert "message" not in text
        assert storage.objects["a.js+b.js"].headers["Content-Type"] == "application/javascript"

    def test_bundle_syntax_error_names_member(
        self, make_dispatcher, public_dir: Path, storage: FakeStorage
    ):
        (public_dir / "js" / "bad.js").write_text("var x = ;\n", encoding="utf-8")
        dispatcher, resolver = make_dispatcher()
        with pytest.raises(ScriptSyntaxError) as excinfo:
            _dispatch(dispatcher, resolver, ["/js/a.js", "/js/bad.js"])
        assert excinfo.value.artifact_name == "/js/bad.js"
        assert storage.put_calls == []

    def test_missing_single_script(self, make_dispatcher):
        dispatcher, resolver = make_dispatcher()
        with pytest.raises(AssetReadError, match="/js/generated.js"):
            _dispatch(dispatcher, resolver, "/js/generated.js")

    def test_non_utf8_script_names_asset(
        self, make_dispatcher, public_dir: Path, storage: FakeStorage
    ):
        (public_dir / "js" / "latin1.js").write_bytes(b'var s = "caf\xe9";\n')
        dispatcher, resolver = make_dispatcher()
        with pytest.raises(AssetReadError, match="/js/latin1.js.*UTF-8"):
            _dispatch(dispatcher, resolver, "/js/latin1.js")
        assert storage.put_calls == []


class TestStylesheets:
    def test_urls_published_and_rewritten(
        self, make_dispatcher, subresources: RecordingSubresources, storage: FakeStorage
    ):
        dispatcher, resolver = make_dispatcher(subresources)
        outcome = _dispatch(dispatcher, resolver, "/css/site.css")
        assert outcome.status is PublishStatus.PUBLISHED
        assert subresources.calls == [SingleAsset(path="/images/a.png")]
        text = storage.objects["css/site.css"].text
        assert "url(../images/a.png)" in text
        assert "\n" not in text

    def test_root_relative_url(
        self, make_dispatcher, subresources: RecordingSubresources, public_dir: Path,
        storage: FakeStorage,
    ):
        (public_dir / "css" / "root.css").write_text(
            ".logo { background-image: url('/images/a.png'); }", encoding="utf-8"
        )
        dispatcher, resolver = make_dispatcher(subresources)
        _dispatch(dispatcher, resolver, "/css/root.css")
        assert subresources.calls == [SingleAsset(path="/images/a.png")]
        assert "../images/a.png" in storage.objects["css/root.css"].text

    def test_bundle_rewrites_relative_to_bundle_name(
        self, make_dispatcher, subresources: RecordingSubresources, public_dir: Path,
        storage: FakeStorage,
    ):
        (public_dir / "css" / "extra.css").write_text(
            "@font-face { font-family: X; src: url(../fonts/x.woff2?v=2) format('woff2'); }"
            ".hero { background: url(../images/a.png); }",
            encoding="utf-8",
        )
        dispatcher, resolver = make_dispatcher(subresources)
        _dispatch(dispatcher, resolver, ["/css/site.css", "/css/extra.css"])
        assert [c.path for c in subresources.calls] == ["/images/a.png", "/fonts/x.woff2"]
        text = storage.objects["site.css+extra.css"].text
        assert "url(images/a.png)" in text
        assert "url(fonts/x.woff2?v=2)" in text

    def test_failed_child_blocks_upload(self, make_dispatcher, storage: FakeStorage):
        dispatcher, resolver = make_dispatcher(RecordingSubresources(PublishStatus.FAILED))
        outcome = _dispatch(dispatcher, resolver, "/css/site.css")
        assert outcome.status is PublishStatus.FAILED
        assert "images/a.png" in outcome.detail
        assert storage.put_calls == []

    def test_custom_loader(self, public_dir: Path, storage: FakeStorage):
        async def load(file_path: Path, public_path: str) -> str:
            return "p { color: blue; }"

        resolver = AssetResolver(public_dir)
        dispatcher = TransformDispatcher(
            resolver,
            Publisher(storage, initial_wait=0.0, max_wait=0.0),
            publish_subresource=RecordingSubresources(),
            load_stylesheet=load,
        )
        asyncio.run(dispatcher.dispatch(resolver.resolve(SingleAsset(path="/css/site.css"))))
        assert "color:blue" in storage.objects["css/site.css"].text


class TestRasterImages:
    def test_png_optimized_and_mtime_restored(
        self, make_dispatcher, public_dir: Path, fake_tools: SimpleNamespace, storage: FakeStorage
    ):
        png = public_dir / "images" / "a.png"
        set_mtime(png)
        dispatcher, resolver = make_dispatcher()
        outcome = _dispatch(dispatcher, resolver, "/images/a.png")
        assert outcome.status is PublishStatus.PUBLISHED
        assert storage.objects["images/a.png"].text == "optimized-png"
        assert png.stat().st_mtime_ns == FIXED_MTIME_NS
        assert fake_tools.log.read_text().strip() == f"optipng {png}"

    def test_jpeg_arguments(
        self, make_dispatcher, public_dir: Path, fake_tools: SimpleNamespace, storage: FakeStorage
    ):
        jpeg = public_dir / "images" / "photo.jpg"
        jpeg.write_bytes(b"\xff\xd8\xff\xe0fake-jpeg")
        dispatcher, resolver = make_dispatcher()
        _dispatch(dispatcher, resolver, "/images/photo.jpg")
        assert fake_tools.log.read_text().strip() == (
            f"jpegtran -copy none -optimize -outfile {jpeg} {jpeg}"
        )
        assert storage.objects["images/photo.jpg"].text == "optimized-jpeg"

    def test_tool_failure_is_fatal(
        self, make_dispatcher, fake_tools: SimpleNamespace, storage: FakeStorage
    ):
        dispatcher, resolver = make_dispatcher(optipng_binary=str(fake_tools.broken))
        with pytest.raises(ToolError) as excinfo:
            _dispatch(dispatcher, resolver, "/images/a.png")
        assert excinfo.value.returncode == 3
        assert "corrupt image data" in str(excinfo.value)
        assert storage.put_calls == []

    def test_missing_tool(self, make_dispatcher, tmp_path: Path):
        dispatcher, resolver = make_dispatcher(optipng_binary=str(tmp_path / "no-such-optipng"))
        with pytest.raises(ToolError) as excinfo:
            _dispatch(dispatcher, resolver, "/images/a.png")
        assert excinfo.value.returncode == 127

    def test_image_bundle_unsupported(self, make_dispatcher, public_dir: Path):
        shutil.copy(public_dir / "images" / "a.png", public_dir / "images" / "b.png")
        dispatcher, resolver = make_dispatcher()
        with pytest.raises(UnsupportedAssetError):
            _dispatch(dispatcher, resolver, ["/images/a.png", "/images/b.png"])


class TestPassthrough:
    def test_gif_verbatim(self, make_dispatcher, storage: FakeStorage):
        dispatcher, resolver = make_dispatcher()
        _dispatch(dispatcher, resolver, "/images/spinner.gif")
        stored = storage.objects["images/spinner.gif"]
        assert stored.text == "GIF89a-fake"
        assert stored.headers["Content-Type"] == "image/gif"

    def test_upload_failure_is_an_outcome(self, make_dispatcher, storage: FakeStorage):
        storage.put_statuses["favicon.ico"] = [500, 502, 503]
        dispatcher, resolver = make_dispatcher()
        outcome = _dispatch(dispatcher, resolver, "/favicon.ico")
        assert outcome.status is PublishStatus.FAILED
        assert outcome.detail == "upload failed"
