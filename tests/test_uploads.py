"""
Unit tests for image upload validation and storage paths.
"""
import unittest
from unittest.mock import Mock, patch

from quiz_presenter.models import ImageUpload
from quiz_presenter.uploads import (
    MAX_UPLOAD_BYTES,
    UploadValidationError,
    build_storage_path,
    resolve_content_type,
    safe_filename,
    upload_image,
    validate_image_upload,
)
from tests.test_fixtures import TestFixtures


class TestImageValidation(unittest.TestCase):
    """Test cases for the image type and size checks."""

    def test_accepts_png(self):
        validate_image_upload(TestFixtures.create_image_upload())

    def test_rejects_non_image(self):
        upload = TestFixtures.create_image_upload("notes.pdf", "application/pdf")
        with self.assertRaises(UploadValidationError) as context:
            validate_image_upload(upload)
        self.assertEqual(str(context.exception), "Please select a valid image file.")

    def test_rejects_oversized_image(self):
        upload = TestFixtures.create_image_upload(size=MAX_UPLOAD_BYTES + 1)
        with self.assertRaises(UploadValidationError) as context:
            validate_image_upload(upload)
        self.assertEqual(str(context.exception), "Max file size is 5MB.")

    def test_limit_is_inclusive(self):
        validate_image_upload(TestFixtures.create_image_upload(size=MAX_UPLOAD_BYTES))

    def test_content_type_guessed_from_filename(self):
        upload = ImageUpload("holiday.JPG", None, b"x")
        self.assertEqual(resolve_content_type(upload), "image/jpeg")

    def test_content_type_parameters_stripped(self):
        upload = ImageUpload("a.png", "Image/PNG; charset=binary", b"x")
        self.assertEqual(resolve_content_type(upload), "image/png")

    def test_upload_error_is_value_error(self):
        self.assertTrue(issubclass(UploadValidationError, ValueError))


class TestStoragePaths(unittest.TestCase):
    """Test cases for storage object naming."""

    def test_build_storage_path(self):
        path = build_storage_path("quiz-images", "quiz-1", "cat.png", timestamp_ms=1700000000000)
        self.assertEqual(path, "quiz-images/quiz-1/1700000000000-cat.png")

    def test_winner_photo_path_uses_season(self):
        path = build_storage_path("winner-photos", "Season 3", "ann.jpg", timestamp_ms=5)
        self.assertEqual(path, "winner-photos/Season-3/5-ann.jpg")

    def test_safe_filename(self):
        self.assertEqual(safe_filename("../../etc/passwd"), "passwd")
        self.assertEqual(safe_filename("my photo (1).png"), "my-photo-1-.png")
        self.assertEqual(safe_filename("..."), "upload")


class TestUploadImage(unittest.TestCase):
    """Test cases for validate-then-upload."""

    def test_upload_image_calls_store(self):
        store = Mock()
        store.upload_file.return_value = "https://cdn/images/x.png"

        with patch('quiz_presenter.uploads.time.time', return_value=1.5):
            url = upload_image(store, "images", "quiz-images", "q1", TestFixtures.create_image_upload("x.png"))

        self.assertEqual(url, "https://cdn/images/x.png")
        bucket, path, data, content_type = store.upload_file.call_args.args
        self.assertEqual(bucket, "images")
        self.assertEqual(path, "quiz-images/q1/1500-x.png")
        self.assertEqual(content_type, "image/png")

    def test_invalid_upload_never_reaches_store(self):
        store = Mock()
        with self.assertRaises(UploadValidationError):
            upload_image(store, "images", "quiz-images", "q1", TestFixtures.create_image_upload("x.txt", "text/plain"))
        store.upload_file.assert_not_called()

    def test_custom_size_limit(self):
        store = Mock()
        with self.assertRaises(UploadValidationError) as context:
            upload_image(store, "images", "quiz-images", "q1",
                         TestFixtures.create_image_upload(size=2 * 1024 * 1024 + 1), max_bytes=2 * 1024 * 1024)
        self.assertEqual(str(context.exception), "Max file size is 2MB.")


if __name__ == '__main__':
    unittest.main()
