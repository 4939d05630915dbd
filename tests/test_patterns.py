from __future__ import annotations

import unittest

from shader.patterns import DEFAULT_EXCLUSIONS, PatternSet, pattern_matches


class PatternMatchTests(unittest.TestCase):
    def test_suffix_pattern(self) -> None:
        self.assertTrue(pattern_matches("*exclude.jar", "libs/nested/please-exclude.jar"))
        self.assertTrue(pattern_matches("*exclude.jar", "exclude.jar"))
        self.assertFalse(pattern_matches("*exclude.jar", "exclude.jar.txt"))

    def test_directory_prefix_pattern(self) -> None:
        self.assertTrue(pattern_matches("org/bukkit/", "org/bukkit/Bukkit.class"))
        self.assertTrue(pattern_matches("org/bukkit/", "org/bukkit/entity/Player.class"))
        self.assertFalse(pattern_matches("org/bukkit/", "org/bukkitx/Other.class"))
        self.assertFalse(pattern_matches("org/bukkit/", "com/org/bukkit/Other.class"))

    def test_glob_pattern(self) -> None:
        self.assertTrue(pattern_matches("META-INF/*.SF", "META-INF/SIGNER.SF"))
        self.assertFalse(pattern_matches("META-INF/*.SF", "META-INF/SIGNER.RSA"))

    def test_plain_pattern_matches_path_or_children(self) -> None:
        self.assertTrue(pattern_matches("module-info.class", "module-info.class"))
        self.assertTrue(pattern_matches("org/joml", "org/joml/Vector3f.class"))
        self.assertFalse(pattern_matches("org/joml", "org/jomlx/Vector3f.class"))

    def test_matching_is_case_sensitive(self) -> None:
        self.assertFalse(pattern_matches("org/bukkit/", "ORG/BUKKIT/Bukkit.class"))


class PatternSetTests(unittest.TestCase):
    def test_empty_set_excludes_nothing(self) -> None:
        patterns = PatternSet()
        self.assertFalse(patterns.should_exclude("org/bukkit/Bukkit.class"))
        self.assertEqual(len(patterns), 0)

    def test_any_pattern_excludes(self) -> None:
        patterns = PatternSet(["org/bukkit/", "*exclude.jar"])
        self.assertTrue(patterns.should_exclude("org/bukkit/Bukkit.class"))
        self.assertTrue(patterns.should_exclude("x/y-exclude.jar"))
        self.assertFalse(patterns.should_exclude("de/tr7zw/changeme/nbtapi/NBTItem.class"))
        self.assertEqual(patterns.matching_pattern("x/y-exclude.jar"), "*exclude.jar")
        self.assertIsNone(patterns.matching_pattern("a/b.class"))

    def test_duplicates_collapse_in_first_seen_order(self) -> None:
        patterns = PatternSet(["org/bukkit/", " com/google/ ", "org/bukkit/", ""])
        self.assertEqual(patterns.patterns, ("org/bukkit/", "com/google/"))
        self.assertIn("com/google/", patterns)

    def test_rejects_non_string_patterns(self) -> None:
        with self.assertRaises(TypeError):
            PatternSet([42])  # type: ignore[list-item]

    def test_default_exclusions_cover_server_api(self) -> None:
        patterns = PatternSet(DEFAULT_EXCLUSIONS)
        for path in (
            "org/spigotmc/SpigotConfig.class",
            "com/google/gson/Gson.class",
            "META-INF/versions/9/module-info.class",
            "META-INF/maven/org.yaml/snakeyaml/pom.xml",
        ):
            self.assertTrue(patterns.should_exclude(path), path)
        self.assertFalse(patterns.should_exclude("META-INF/maven/de.tr7zw/item-nbt-api/pom.xml"))


if __name__ == "__main__":
    unittest.main()
