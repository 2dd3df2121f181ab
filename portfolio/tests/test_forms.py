import asyncio
import io
import unittest
from datetime import datetime, timezone

from starlette.datastructures import Headers, UploadFile

from portfolio.db import ProjectRecord
from portfolio.forms import (
    ImageUpload,
    ProjectForm,
    parse_technologies,
    read_image_preview,
    validate_project_form,
)


def _upload(filename: str, content_type: str, data: bytes) -> UploadFile:
    return UploadFile(
        file=io.BytesIO(data),
        filename=filename,
        headers=Headers({"content-type": content_type}),
    )


class ParseTechnologiesTests(unittest.TestCase):
    def test_trims_and_drops_empty_segments(self):
        self.assertEqual(
            parse_technologies(" React, TypeScript ,, Next.js ,"),
            ["React", "TypeScript", "Next.js"],
        )

    def test_keeps_duplicates_in_order(self):
        self.assertEqual(parse_technologies("Go, Python, Go"), ["Go", "Python", "Go"])

    def test_empty_input(self):
        self.assertEqual(parse_technologies(""), [])
        self.assertEqual(parse_technologies(None), [])
        self.assertEqual(parse_technologies(" , ,"), [])


class ValidateProjectFormTests(unittest.TestCase):
    def test_title_required(self):
        result = validate_project_form(ProjectForm(title="   "))
        self.assertFalse(result.ok)
        self.assertIn("title", result.errors)

    def test_minimal_form_is_valid(self):
        self.assertTrue(validate_project_form(ProjectForm(title="Portfolio Site")).ok)

    def test_rejects_non_image_media_type(self):
        image = ImageUpload(filename="notes.pdf", content_type="application/pdf", data=b"%PDF")
        result = validate_project_form(ProjectForm(title="x"), image)
        self.assertEqual(result.errors["image"], "File must be an image")

    def test_rejects_oversized_image(self):
        image = ImageUpload(
            filename="big.png",
            content_type="image/png",
            data=b"\0" * (5 * 1024 * 1024 + 1),
        )
        result = validate_project_form(ProjectForm(title="x"), image)
        self.assertIn("image", result.errors)

    def test_accepts_image_at_limit(self):
        image = ImageUpload(
            filename="ok.png", content_type="image/png", data=b"\0" * (5 * 1024 * 1024)
        )
        self.assertTrue(validate_project_form(ProjectForm(title="x"), image).ok)

    def test_link_fields_must_be_http(self):
        form = ProjectForm(title="x", demo_url="javascript:alert(1)", github_url="https://github.com/a/b")
        result = validate_project_form(form)
        self.assertIn("demo_url", result.errors)
        self.assertNotIn("github_url", result.errors)


class ProjectFormTests(unittest.TestCase):
    def test_from_project_joins_technologies(self):
        now = datetime(2024, 1, 1, tzinfo=timezone.utc)
        record = ProjectRecord(
            id="abc",
            title="Site",
            description="d",
            technologies=["React", "Next.js"],
            image_url="",
            demo_url="https://demo.test",
            github_url="",
            featured=True,
            created_at=now,
            updated_at=now,
        )
        form = ProjectForm.from_project(record)
        self.assertEqual(form.technologies, "React, Next.js")
        self.assertTrue(form.featured)
        self.assertEqual(form.demo_url, "https://demo.test")

    def test_to_fields(self):
        fields = ProjectForm(title=" Site ", technologies="a, b").to_fields("http://img")
        self.assertEqual(fields.title, "Site")
        self.assertEqual(fields.technologies, ["a", "b"])
        self.assertEqual(fields.image_url, "http://img")
        self.assertFalse(fields.featured)


class ReadImagePreviewTests(unittest.TestCase):
    def test_preview_is_data_url(self):
        result = asyncio.run(read_image_preview(_upload("a.png", "image/png", b"png-bytes")))
        self.assertTrue(result.ok)
        self.assertTrue(result.data_url.startswith("data:image/png;base64,"))

    def test_preview_failure_is_reported(self):
        result = asyncio.run(read_image_preview(_upload("a.txt", "text/plain", b"hi")))
        self.assertFalse(result.ok)
        self.assertEqual(result.error, "File must be an image")

    def test_missing_file(self):
        result = asyncio.run(read_image_preview(None))
        self.assertFalse(result.ok)


if __name__ == "__main__":
    unittest.main()
