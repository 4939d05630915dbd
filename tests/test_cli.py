from __future__ import annotations

from io import StringIO
from pathlib import Path
from unittest.mock import patch
import tempfile
import textwrap
import unittest

from shader.cli import EXIT_CONFIG_ERROR, EXIT_OK, EXIT_PACKAGING_ERROR, main

from shade_fixtures import build_class, build_jar, read_jar


class CliTests(unittest.TestCase):
    def setUp(self) -> None:
        self.temp_dir = tempfile.TemporaryDirectory()
        self.root = Path(self.temp_dir.name)
        self.config = self.root / "shade.toml"
        self.config.write_text(
            textwrap.dedent(
                """
                [project]
                name = "nbt"
                version = "1.0"
                group = "org.broken.arrow.library"

                [shade]
                classifier = "all"

                [[shade.relocate]]
                from = "de.tr7zw.changeme.nbtapi"
                to = "{{dependency:nbt}}"
                """
            )
        )
        self.jar = build_jar(
            self.root / "item-nbt-api.jar",
            {
                "de/tr7zw/changeme/nbtapi/utils/Version.txt": "de.tr7zw.changeme.nbtapi.utils",
                "org/bukkit/Bukkit.class": build_class("org/bukkit/Bukkit"),
            },
        )

    def tearDown(self) -> None:
        self.temp_dir.cleanup()

    def _run(self, *argv: str) -> tuple[int, str]:
        with patch("sys.stdout", new=StringIO()) as fake_out:
            code = main(list(argv))
        return code, fake_out.getvalue()

    def test_merge_writes_archive(self) -> None:
        output_dir = self.root / "libs"
        code, output = self._run("merge", str(self.jar), "-c", str(self.config), "-o", str(output_dir))
        self.assertEqual(code, EXIT_OK)
        target = output_dir / "nbt-1.0-all.jar"
        self.assertIn(str(target), output)
        entries = read_jar(target)
        relocated = "org/broken/arrow/library/dependencies/nbt/utils/Version.txt"
        self.assertEqual(entries[relocated], b"org.broken.arrow.library.dependencies.nbt.utils")
        self.assertNotIn("org/bukkit/Bukkit.class", entries)

    def test_command_line_overrides(self) -> None:
        output_dir = self.root / "libs"
        code, _output = self._run(
            "merge",
            str(self.jar),
            "-c",
            str(self.config),
            "-o",
            str(output_dir),
            "--version",
            "2.0",
            "--classifier",
            "shaded",
            "--no-default-exclusions",
            "-e",
            "*.txt",
        )
        self.assertEqual(code, EXIT_OK)
        entries = read_jar(output_dir / "nbt-2.0-shaded.jar")
        self.assertIn("org/bukkit/Bukkit.class", entries)
        self.assertFalse(any(name.endswith(".txt") for name in entries))

    def test_relocate_flag(self) -> None:
        output_dir = self.root / "libs"
        code, _output = self._run(
            "merge",
            str(self.jar),
            "--name",
            "demo",
            "--version",
            "1.0",
            "--group",
            "org.example",
            "-r",
            "de.tr7zw=org.example.deps.tr7zw",
            "-o",
            str(output_dir),
        )
        self.assertEqual(code, EXIT_OK)
        entries = read_jar(output_dir / "demo-1.0.jar")
        self.assertIn("org/example/deps/tr7zw/changeme/nbtapi/utils/Version.txt", entries)

    def test_missing_input_is_packaging_error(self) -> None:
        code, output = self._run(
            "merge", str(self.root / "missing.jar"), "-c", str(self.config), "-o", str(self.root / "libs"))
        self.assertEqual(code, EXIT_PACKAGING_ERROR)
        self.assertIn("Error:", output)
        self.assertFalse((self.root / "libs" / "nbt-1.0-all.jar").exists())

    def test_duplicate_fail_policy(self) -> None:
        other = build_jar(self.root / "other.jar", {"de/tr7zw/changeme/nbtapi/utils/Version.txt": "other"})
        code, output = self._run(
            "merge", str(self.jar), str(other), "-c", str(self.config), "--policy", "fail",
            "-o", str(self.root / "libs"))
        self.assertEqual(code, EXIT_PACKAGING_ERROR)
        self.assertIn("Duplicate entry", output)

    def test_invalid_relocation_flag_is_config_error(self) -> None:
        code, output = self._run("merge", str(self.jar), "-c", str(self.config), "-r", "missing-target")
        self.assertEqual(code, EXIT_CONFIG_ERROR)
        self.assertIn("FROM=TO", output)

    def test_dry_run_does_not_write(self) -> None:
        output_dir = self.root / "libs"
        code, output = self._run("merge", str(self.jar), "-c", str(self.config), "-o", str(output_dir), "-n")
        self.assertEqual(code, EXIT_OK)
        self.assertIn("[DRY]", output)
        self.assertFalse(output_dir.exists())

    def test_name_command(self) -> None:
        code, output = self._run("name", "--name", "nbt", "--version", "1.0")
        self.assertEqual(code, EXIT_OK)
        self.assertEqual(output.strip(), "nbt-1.0.jar")

        code, output = self._run("name", "-c", str(self.config))
        self.assertEqual(output.strip(), "nbt-1.0-all.jar")

    def test_name_requires_identity(self) -> None:
        code, output = self._run("name")
        self.assertEqual(code, EXIT_CONFIG_ERROR)
        self.assertIn("Error:", output)

    def test_validate_command(self) -> None:
        code, output = self._run("validate", "-c", str(self.config))
        self.assertEqual(code, EXIT_OK)
        self.assertIn("Relocate: de.tr7zw.changeme.nbtapi -> org.broken.arrow.library.dependencies.nbt", output)

        bad = self.root / "bad.toml"
        bad.write_text('[project]\nname = "x"\nversion = "1"\n[shade]\nformat = "rar"\n')
        code, output = self._run("validate", "-c", str(bad))
        self.assertEqual(code, EXIT_CONFIG_ERROR)


if __name__ == "__main__":
    unittest.main()
