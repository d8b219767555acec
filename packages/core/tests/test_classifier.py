"""Tests for the diff classifier."""

import pytest

from crflow_core.classifier import (
    DiffClassifier,
    categorize,
    classify,
    derive_name,
    file_type_label,
    is_component,
    is_function,
    is_stylesheet,
)
from crflow_core.models import Category, DiffFile, FileStatus


def _files(*specs):
    return [DiffFile(path=p, status=s) for p, s in specs]


class TestEndToEnd:
    def test_component_function_and_stylesheet(self):
        result = classify(
            _files(
                ("src/components/UserCard.tsx", FileStatus.ADDED),
                ("src/pages/login/index.ts", FileStatus.MODIFIED),
                ("src/styles/app.css", FileStatus.MODIFIED),
            )
        )

        assert len(result.components) == 1
        component = result.components[0]
        assert component.name == "UserCard"
        assert component.status == FileStatus.ADDED
        assert component.file_type == "TSX"

        assert len(result.functions) == 1
        function = result.functions[0]
        assert function.name == "(TS) login"
        assert function.category == Category.PAGES
        assert function.status == FileStatus.MODIFIED
        assert function.description == "(TS) login - page"

        paths = [s.relative_path for s in result.components + result.functions]
        assert "src/styles/app.css" not in paths

    def test_empty_input(self):
        result = classify([])
        assert result.components == []
        assert result.functions == []

    def test_idempotent(self):
        files = _files(
            ("src/components/Button.vue", FileStatus.MODIFIED),
            ("app/utils/format.ts", FileStatus.ADDED),
        )
        assert classify(files) == classify(files)

    def test_root_fills_absolute_path(self):
        result = DiffClassifier(root="/work/repo").classify(_files(("app/components/Nav.vue", FileStatus.ADDED)))
        component = result.components[0]
        assert component.path == "/work/repo/app/components/Nav.vue"
        assert component.relative_path == "app/components/Nav.vue"

    def test_file_can_be_both_component_and_function(self):
        result = classify(_files(("app/views/components/Header.vue", FileStatus.MODIFIED)))
        assert [c.name for c in result.components] == ["Header"]
        assert [f.category for f in result.functions] == [Category.PAGES]


class TestPredicates:
    @pytest.mark.parametrize(
        "path", ["a.css", "b/c.SCSS", "d.sass", "e.less", "f.styl", "g.stylus", "src\\theme\\main.css"]
    )
    def test_stylesheets(self, path):
        assert is_stylesheet(path)

    def test_stylesheet_excluded_even_under_components(self):
        result = classify(_files(("app/components/Card.scss", FileStatus.ADDED)))
        assert result.components == []
        assert result.functions == []

    def test_component_by_directory(self):
        assert is_component("app/widgets/clock.js")
        assert is_component("app/ui/button.ts")

    def test_component_by_pascal_case_extension(self):
        assert is_component("Modal.svelte")
        assert not is_component("modal.svelte")
        assert not is_component("Modal.ts")

    def test_matching_is_literal_on_given_path(self):
        # No leading slash is added: "src/" at the start is not "/src/".
        assert not is_function("src/components/UserCard.tsx")
        assert is_function("packages/web/src/main.ts")
        assert is_function("app/lib/http.js")

    def test_windows_separators_are_normalised(self):
        assert is_component("app\\components\\Card.vue")

    @pytest.mark.parametrize(
        "path, category",
        [
            ("app/pages/home.ts", Category.PAGES),
            ("app/views/home.ts", Category.PAGES),
            ("app/api/user.ts", Category.API),
            ("app/services/user.ts", Category.API),
            ("app/utils/date.ts", Category.UTILS),
            ("app/helpers/date.ts", Category.UTILS),
            ("app/store/user.ts", Category.STORE),
            ("app/stores/user.ts", Category.STORE),
            ("app/features/cart.ts", Category.FEATURES),
            ("app/modules/cart.ts", Category.FEATURES),
            ("app/src/main.ts", Category.OTHER),
        ],
    )
    def test_categories(self, path, category):
        assert categorize(path) == category

    def test_first_category_rule_wins(self):
        assert categorize("app/pages/api/login.ts") == Category.PAGES


class TestNaming:
    def test_extension_stripped(self):
        assert derive_name("src/components/UserCard.tsx") == "UserCard"

    def test_index_uses_two_nearest_meaningful_ancestors(self):
        assert derive_name("src/pages/user/profile/index.vue") == "(Vue) profileUser"

    def test_index_skips_generic_segments(self):
        assert derive_name("src/components/index.ts") == "(TS) components"

    def test_top_level_index(self):
        assert derive_name("index.js") == "(JS) index.js"

    def test_index_without_mapped_label(self):
        assert derive_name("app/settings/index.py") == "settingsApp"

    def test_sibling_index_files_get_distinct_names(self):
        result = classify(
            _files(
                ("src/pages/order/list/index.vue", FileStatus.MODIFIED),
                ("src/pages/order/detail/index.vue", FileStatus.MODIFIED),
            )
        )
        names = [f.name for f in result.functions]
        assert len(set(names)) == 2

    def test_file_type_label_fallback(self):
        assert file_type_label(".tsx") == "TSX"
        assert file_type_label(".graphql") == "GRAPHQL"
        assert file_type_label("") == ""


class TestOrdering:
    def test_components_added_first_then_by_name(self):
        result = classify(
            _files(
                ("app/components/Zeta.vue", FileStatus.ADDED),
                ("app/components/Alpha.vue", FileStatus.MODIFIED),
                ("app/components/Beta.vue", FileStatus.ADDED),
            )
        )
        assert [c.name for c in result.components] == ["Beta", "Zeta", "Alpha"]

    def test_functions_by_category_then_added_then_name(self):
        result = classify(
            _files(
                ("app/utils/b.ts", FileStatus.MODIFIED),
                ("app/utils/a.ts", FileStatus.MODIFIED),
                ("app/api/z.ts", FileStatus.ADDED),
                ("app/utils/c.ts", FileStatus.ADDED),
            )
        )
        assert [(f.category, f.name) for f in result.functions] == [
            (Category.API, "z"),
            (Category.UTILS, "c"),
            (Category.UTILS, "a"),
            (Category.UTILS, "b"),
        ]
