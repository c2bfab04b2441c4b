# ruff: noqa: S101
from __future__ import annotations

from pathlib import Path

import pytest

from flatten_sources import flatten_source
from verify_errors import DuplicateLicenseError, SourceNotFound, UnsupportedImportAlias


def _write(root: Path, rel: str, text: str) -> Path:
    path = root / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


@pytest.fixture
def diamond(tmp_path: Path) -> Path:
    _write(tmp_path, "contracts/Common.sol", (
        "// SPDX-License-Identifier: MIT\n"
        "pragma solidity ^0.8.0;\n\n"
        "contract Common {}\n"
    ))
    _write(tmp_path, "contracts/Left.sol", (
        "// SPDX-License-Identifier: MIT\n"
        "pragma solidity ^0.8.0;\n\n"
        'import "./Common.sol";\n\n'
        "// left side of the diamond\n"
        "contract Left is Common {}\n"
    ))
    _write(tmp_path, "contracts/Right.sol", (
        "// SPDX-License-Identifier: MIT\n"
        "pragma solidity ^0.8.0;\n\n"
        'import {Common} from "./Common.sol";\n\n'
        "contract Right is Common {}\n"
    ))
    return _write(tmp_path, "contracts/Top.sol", (
        "// SPDX-License-Identifier: MIT\n"
        "pragma solidity ^0.8.0;\n\n"
        'import "./Left.sol";\n'
        'import * as R from "./Right.sol";\n\n'
        "contract Top is Left, R.Right {}\n"
    ))


def test_diamond_import_inlines_shared_file_once(tmp_path: Path, diamond: Path) -> None:
    out = flatten_source(str(diamond), license="MIT", working_dir=str(tmp_path))

    assert out.count("contract Common {}") == 1
    assert out.count("// File: contracts/Common.sol") == 1
    assert "import " not in out
    # dependencies come before their dependents
    assert out.index("contract Common {}") < out.index("contract Left is Common")
    assert out.index("contract Right is Common") < out.index("contract Top is")
    assert "// left side of the diamond" in out
    assert "contract Top is Left, Right {}" in out
    assert "R.Right" not in out


def test_pragmas_are_hoisted_once(tmp_path: Path, diamond: Path) -> None:
    out = flatten_source(str(diamond), license="MIT", working_dir=str(tmp_path))
    assert out.count("pragma solidity ^0.8.0;") == 1
    assert out.index("pragma solidity") < out.index("// File:")


def test_license_replaces_every_marker_with_one(tmp_path: Path, diamond: Path) -> None:
    out = flatten_source(str(diamond), license="GPL-3.0", working_dir=str(tmp_path))

    markers = [line for line in out.splitlines() if "SPDX-License-Identifier" in line]
    assert markers == ["// SPDX-License-Identifier: GPL-3.0"]
    assert out.startswith("// SPDX-License-Identifier: GPL-3.0\n")


def test_multiple_markers_without_license_fail_fast(tmp_path: Path, diamond: Path) -> None:
    with pytest.raises(DuplicateLicenseError, match="--license"):
        flatten_source(str(diamond), working_dir=str(tmp_path))


def test_single_file_keeps_its_own_marker(tmp_path: Path) -> None:
    src = _write(tmp_path, "contracts/Solo.sol", (
        "// SPDX-License-Identifier: Apache-2.0\n"
        "pragma solidity 0.7.6;\n"
        "contract Solo {}\n"
    ))
    out = flatten_source(str(src), working_dir=str(tmp_path))
    assert out.count("SPDX-License-Identifier: Apache-2.0") == 1


def test_marker_the_strip_routine_misses_is_reported(tmp_path: Path) -> None:
    _write(tmp_path, "contracts/Odd.sol", (
        "/* SPDX-License-Identifier: MIT */\n"
        "pragma solidity ^0.8.0;\n"
        "contract Odd {}\n"
    ))
    src = _write(tmp_path, "contracts/Main.sol", (
        "// SPDX-License-Identifier: MIT\n"
        "pragma solidity ^0.8.0;\n"
        'import "./Odd.sol";\n'
        "contract Main is Odd {}\n"
    ))
    with pytest.raises(DuplicateLicenseError):
        flatten_source(str(src), license="MIT", working_dir=str(tmp_path))


def test_node_modules_imports_are_resolved(tmp_path: Path) -> None:
    _write(tmp_path, "node_modules/@openzeppelin/contracts/access/Ownable.sol", (
        "pragma solidity ^0.8.0;\n"
        "abstract contract Ownable {}\n"
    ))
    src = _write(tmp_path, "contracts/Owned.sol", (
        "pragma solidity ^0.8.0;\n"
        'import "@openzeppelin/contracts/access/Ownable.sol";\n'
        "contract Owned is Ownable {}\n"
    ))
    out = flatten_source(str(src), license="MIT", working_dir=str(tmp_path))
    assert "abstract contract Ownable {}" in out
    assert "// File: node_modules/@openzeppelin/contracts/access/Ownable.sol" in out


def test_circular_imports_terminate(tmp_path: Path) -> None:
    _write(tmp_path, "contracts/A.sol", 'pragma solidity ^0.8.0;\nimport "./B.sol";\ncontract A {}\n')
    src = _write(tmp_path, "contracts/B.sol", 'pragma solidity ^0.8.0;\nimport "./A.sol";\ncontract B {}\n')

    out = flatten_source(str(src), license="MIT", working_dir=str(tmp_path))
    assert out.count("contract A {}") == 1
    assert out.count("contract B {}") == 1


def test_missing_root_file(tmp_path: Path) -> None:
    with pytest.raises(SourceNotFound, match="Could not find Ghost source file"):
        flatten_source(str(tmp_path / "contracts" / "Ghost.sol"), contract_name="Ghost")


def test_unresolvable_import(tmp_path: Path) -> None:
    src = _write(tmp_path, "contracts/Broken.sol", 'pragma solidity ^0.8.0;\nimport "./Nope.sol";\n')
    with pytest.raises(SourceNotFound, match="Nope.sol"):
        flatten_source(str(src), working_dir=str(tmp_path))


def test_symbol_alias_is_renamed_to_the_imported_name(tmp_path: Path) -> None:
    _write(tmp_path, "contracts/Base.sol", "pragma solidity ^0.8.0;\ncontract Base {}\nlibrary Math {}\n")
    src = _write(tmp_path, "contracts/Main.sol", (
        "pragma solidity ^0.8.0;\n"
        'import {Base as B, Math as M} from "./Base.sol";\n'
        "contract Main is B {\n"
        '    string public note = "B stays B";\n'
        "    // B in a comment is left alone\n"
        "    function f(uint x) public pure returns (uint) { return M.x(x); }\n"
        "}\n"
    ))

    out = flatten_source(str(src), license="MIT", working_dir=str(tmp_path))

    assert "contract Main is Base {" in out
    assert "return Math.x(x);" in out
    assert '"B stays B"' in out
    assert "// B in a comment is left alone" in out
    assert " is B " not in out
    assert "M.x" not in out


def test_unit_alias_prefix_is_dropped(tmp_path: Path) -> None:
    _write(tmp_path, "contracts/Base.sol", "pragma solidity ^0.8.0;\ncontract Base {}\n")
    src = _write(tmp_path, "contracts/Main.sol", (
        "pragma solidity ^0.8.0;\n"
        'import "./Base.sol" as Lib;\n'
        "contract Main is Lib . Base {}\n"
    ))

    out = flatten_source(str(src), license="MIT", working_dir=str(tmp_path))
    assert "contract Main is Base {}" in out
    assert "Lib" not in out


def test_bare_namespace_alias_use_is_rejected(tmp_path: Path) -> None:
    _write(tmp_path, "contracts/Base.sol", "pragma solidity ^0.8.0;\ncontract Base {}\n")
    src = _write(tmp_path, "contracts/Main.sol", (
        "pragma solidity ^0.8.0;\n"
        'import * as Lib from "./Base.sol";\n'
        "contract Main { function f() public { Lib; } }\n"
    ))
    with pytest.raises(UnsupportedImportAlias, match="Lib"):
        flatten_source(str(src), license="MIT", working_dir=str(tmp_path))


def test_imports_inside_comments_are_not_followed(tmp_path: Path) -> None:
    _write(tmp_path, "contracts/Old.sol", "pragma solidity ^0.6.0;\ncontract Old {}\n")
    src = _write(tmp_path, "contracts/Main.sol", (
        "pragma solidity ^0.8.0;\n"
        "/*\n"
        'import "./Old.sol";\n'
        "pragma solidity ^0.6.0;\n"
        "*/\n"
        '// import "./Gone.sol";\n'
        "contract Main {}\n"
    ))

    out = flatten_source(str(src), license="MIT", working_dir=str(tmp_path))

    assert "contract Old {}" not in out
    assert 'import "./Old.sol";' in out
    assert '// import "./Gone.sol";' in out
    assert out.count("// File:") == 1
    assert "pragma solidity ^0.6.0;\n*/" in out
    assert out.startswith("// SPDX-License-Identifier: MIT\n\npragma solidity ^0.8.0;\n\n")
