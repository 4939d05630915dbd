from __future__ import annotations

import unittest

from shader.classfile import ClassFormatError, is_class_file, iter_utf8_constants, rewrite_constant_pool

from shade_fixtures import build_class, class_tail


class ConstantPoolTests(unittest.TestCase):
    def setUp(self) -> None:
        self.data = build_class(
            "de/tr7zw/changeme/nbtapi/NBTItem",
            strings=["de.tr7zw.changeme.nbtapi.NBTItem"],
            descriptors=["(Lde/tr7zw/changeme/nbtapi/NBTCompound;)V"],
        )

    def test_iterates_utf8_constants_past_wide_entries(self) -> None:
        values = [value for _index, value in iter_utf8_constants(self.data)]
        self.assertEqual(
            values,
            [
                b"de/tr7zw/changeme/nbtapi/NBTItem",
                b"java/lang/Object",
                b"de.tr7zw.changeme.nbtapi.NBTItem",
                b"(Lde/tr7zw/changeme/nbtapi/NBTCompound;)V",
            ],
        )

    def test_rewrite_updates_length_prefixes(self) -> None:
        rewritten = rewrite_constant_pool(
            self.data,
            lambda value: value.replace(b"de/tr7zw/changeme/nbtapi", b"org/example/deps/nbt"),
        )

        values = [value for _index, value in iter_utf8_constants(rewritten)]
        self.assertIn(b"org/example/deps/nbt/NBTItem", values)
        self.assertIn(b"(Lorg/example/deps/nbt/NBTCompound;)V", values)
        self.assertIn(b"java/lang/Object", values)
        self.assertEqual(class_tail(rewritten), class_tail(self.data))
        self.assertTrue(is_class_file(rewritten))

    def test_unchanged_pool_returns_original_object(self) -> None:
        result = rewrite_constant_pool(self.data, lambda value: value)
        self.assertIs(result, self.data)

    def test_rejects_non_class_payload(self) -> None:
        with self.assertRaises(ClassFormatError):
            rewrite_constant_pool(b"not a class file", lambda value: value)

    def test_rejects_truncated_pool(self) -> None:
        with self.assertRaises(ClassFormatError):
            rewrite_constant_pool(self.data[:20], lambda value: value)

    def test_rejects_unknown_tag(self) -> None:
        broken = self.data[:10] + b"\x63" + self.data[11:]
        with self.assertRaises(ClassFormatError):
            list(iter_utf8_constants(broken))


if __name__ == "__main__":
    unittest.main()
