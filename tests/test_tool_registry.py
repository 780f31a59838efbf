"""
Tests for the Tool Executors Registry.

Tests cover:
- Registry creation and basic operations
- Executor registration and lookup
- Defaults and metadata
- Execution with parameter merging
- Filtering by tags
- Built-in tools
- Singleton pattern
"""

import unittest

from KB_Libs.ImageEditingLib.errors import EncodeError, InvalidCrop, InvalidParameter
from KB_Libs.ImageEditingLib.geometry_ops import rotate
from KB_Libs.ImageEditingLib.image_models import CropRegion, PixelBuffer
from KB_Libs.SessionLib.tool_registry import (
    ToolOutput,
    ToolRegistry,
    create_default_registry,
    register_default_tools,
)

from conftest import make_gradient_array


def passthrough(buffer, params):
    return ToolOutput(buffer.copy())


class TestToolRegistry(unittest.TestCase):
    """Test ToolRegistry basic functionality."""

    def setUp(self):
        """Create a fresh registry for each test."""
        self.registry = ToolRegistry()
        self.buffer = PixelBuffer.blank(8, 4, (1, 2, 3, 255))

    def test_registry_creation(self):
        self.assertEqual(self.registry.list_tools(), [])

    def test_register_and_lookup(self):
        self.registry.register("Noop", passthrough)

        self.assertTrue(self.registry.has_executor("noop"))
        self.assertTrue(self.registry.has_executor(" NOOP "))
        self.assertIs(self.registry.get_executor("noop"), passthrough)
        self.assertIn("noop", self.registry.list_tools())

    def test_register_empty_name_raises_error(self):
        with self.assertRaises(ValueError):
            self.registry.register("", passthrough)

    def test_register_non_callable_raises_error(self):
        with self.assertRaises(ValueError):
            self.registry.register("bad", "not callable")

    def test_register_duplicate_raises_error(self):
        self.registry.register("noop", passthrough)
        with self.assertRaises(RuntimeError):
            self.registry.register("noop", passthrough)

    def test_unregister(self):
        self.registry.register("noop", passthrough)
        self.assertTrue(self.registry.unregister("noop"))
        self.assertFalse(self.registry.unregister("noop"))
        self.assertFalse(self.registry.has_executor("noop"))

    def test_get_missing_executor_raises_key_error(self):
        with self.assertRaises(KeyError):
            self.registry.get_executor("missing")

    def test_metadata(self):
        self.registry.register("noop", passthrough, description="Does nothing", tags=["Test"])
        meta = self.registry.get_metadata("noop")
        self.assertEqual(meta["description"], "Does nothing")
        self.assertEqual(meta["tags"], ["Test"])

    def test_static_defaults(self):
        self.registry.register("noop", passthrough, defaults={"level": 1})
        defaults = self.registry.get_defaults("noop", self.buffer)
        defaults["level"] = 99
        self.assertEqual(self.registry.get_defaults("noop", self.buffer), {"level": 1})

    def test_callable_defaults(self):
        self.registry.register("noop", passthrough, defaults=lambda b: {"width": b.width})
        self.assertEqual(self.registry.get_defaults("noop", self.buffer), {"width": 8})

    def test_execute_merges_defaults(self):
        seen = {}

        def recorder(buffer, params):
            seen.update(params)
            return ToolOutput(buffer)

        self.registry.register("rec", recorder, defaults={"a": 1, "b": 2})
        self.registry.execute("rec", self.buffer, {"b": 5})

        self.assertEqual(seen, {"a": 1, "b": 5})

    def test_execute_rejects_unknown_parameters(self):
        self.registry.register("noop", passthrough, defaults={"a": 1})
        with self.assertRaises(InvalidParameter):
            self.registry.execute("noop", self.buffer, {"z": 1})

    def test_filter_by_tag(self):
        self.registry.register("one", passthrough, tags=["geometry"])
        self.registry.register("two", passthrough, tags=["Color"])
        self.assertEqual(self.registry.filter_by_tag("color"), ["two"])
        self.assertEqual(self.registry.filter_by_tag("missing"), [])

    def test_clear(self):
        self.registry.register("noop", passthrough)
        self.registry.clear()
        self.assertEqual(self.registry.list_tools(), [])


class TestDefaultTools(unittest.TestCase):
    """Test the built-in tool executors."""

    def setUp(self):
        self.registry = ToolRegistry()
        register_default_tools(self.registry)
        self.buffer = PixelBuffer.from_array(make_gradient_array(100, 50))

    def test_all_tools_registered(self):
        self.assertEqual(
            self.registry.list_tools(),
            ["compress", "convert", "crop", "filters", "resize", "rotate"],
        )

    def test_tags(self):
        self.assertEqual(self.registry.filter_by_tag("geometry"), ["crop", "resize", "rotate"])
        self.assertEqual(self.registry.filter_by_tag("codec"), ["compress", "convert"])

    def test_defaults_are_identity(self):
        for tool in ("rotate", "crop", "resize", "filters"):
            output = self.registry.execute(tool, self.buffer)
            self.assertEqual(output.buffer, self.buffer, tool)
            self.assertIsNone(output.encoded)

    def test_crop_defaults_follow_buffer(self):
        defaults = self.registry.get_defaults("crop", self.buffer)
        self.assertEqual(defaults["width"], 100)
        self.assertEqual(defaults["view_height"], 50)

    def test_crop_defaults_cover_whole_view(self):
        defaults = self.registry.get_defaults("crop", self.buffer)
        region = CropRegion(defaults["x"], defaults["y"], defaults["width"], defaults["height"])
        self.assertEqual(region, CropRegion.full(defaults["view_width"], defaults["view_height"]))

    def test_rotate(self):
        output = self.registry.execute("rotate", self.buffer, {"angle": 90})
        self.assertEqual(output.buffer, rotate(self.buffer, 90))

    def test_crop(self):
        output = self.registry.execute("crop", self.buffer, {"x": 10, "y": 10, "width": 20, "height": 20})
        self.assertEqual(output.buffer.size, (20, 20))
        self.assertEqual(output.buffer.pixel(0, 0), self.buffer.pixel(10, 10))

    def test_crop_error_propagates(self):
        with self.assertRaises(InvalidCrop):
            self.registry.execute("crop", self.buffer, {"width": 0})

    def test_resize(self):
        output = self.registry.execute("resize", self.buffer, {"width": 30, "height": 70})
        self.assertEqual(output.buffer.size, (30, 70))

    def test_resize_keep_aspect(self):
        output = self.registry.execute("resize", self.buffer, {"width": 50, "keep_aspect": True})
        self.assertEqual(output.buffer.size, (50, 25))

    def test_resize_keep_aspect_height_only(self):
        output = self.registry.execute(
            "resize", self.buffer, {"width": None, "height": 10, "keep_aspect": True}
        )
        self.assertEqual(output.buffer.size, (20, 10))

    def test_filters(self):
        output = self.registry.execute("filters", self.buffer, {"saturation": 0})
        r, g, b, _ = output.buffer.pixel(40, 20)
        self.assertEqual(r, g)
        self.assertEqual(g, b)

    def test_compress_defaults_to_jpeg(self):
        output = self.registry.execute("compress", self.buffer)
        self.assertEqual(output.encoded.mime_type, "image/jpeg")
        self.assertEqual(output.buffer.size, self.buffer.size)

    def test_convert_defaults_to_png(self):
        output = self.registry.execute("convert", self.buffer)
        self.assertEqual(output.encoded.mime_type, "image/png")
        self.assertEqual(output.buffer, self.buffer)

    def test_convert_bad_format(self):
        with self.assertRaises(EncodeError):
            self.registry.execute("convert", self.buffer, {"mime_type": "image/gif"})


class TestCreateDefaultRegistry(unittest.TestCase):
    """Test building registries with the built-in tools."""

    def test_new_instance_each_call(self):
        self.assertIsNot(create_default_registry(), create_default_registry())

    def test_changes_stay_local(self):
        first = create_default_registry()
        second = create_default_registry()
        first.unregister("rotate")
        self.assertFalse(first.has_executor("rotate"))
        self.assertTrue(second.has_executor("rotate"))

    def test_has_builtin_tools(self):
        registry = create_default_registry()
        for tool in ("rotate", "crop", "resize", "filters", "compress", "convert"):
            self.assertTrue(registry.has_executor(tool))
