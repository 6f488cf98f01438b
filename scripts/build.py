#!/usr/bin/env python3
"""
Build script for the Lambda functions.

Each directory under src/ except the shared order_rules package is a function.
Its zip contains the function files, the order_rules package and, when the
function has a requirements.txt, its third-party dependencies.
"""
import os
import shutil
import subprocess
import sys
import zipfile
from pathlib import Path

SHARED_PACKAGE = "order_rules"


def main():
    """Main build function"""
    project_root = Path(__file__).parent.parent
    src_dir = project_root / "src"
    build_dir = project_root / "build"

    build_dir.mkdir(exist_ok=True)

    functions = [
        d for d in src_dir.iterdir()
        if d.is_dir() and d.name != SHARED_PACKAGE and not d.name.startswith(("_", "."))
    ]

    print(f"Building Lambda functions: {[f.name for f in functions]}")

    for function_dir in functions:
        function_name = function_dir.name
        zip_path = build_dir / f"{function_name}.zip"

        print(f"Building {function_name}...")

        temp_dir = build_dir / f"temp_{function_name}"
        if temp_dir.exists():
            shutil.rmtree(temp_dir)
        temp_dir.mkdir()

        shutil.copytree(function_dir, temp_dir, dirs_exist_ok=True)
        shutil.copytree(
            src_dir / SHARED_PACKAGE,
            temp_dir / SHARED_PACKAGE,
            ignore=shutil.ignore_patterns("__pycache__", "*.pyc"),
        )

        requirements_file = function_dir / "requirements.txt"
        if requirements_file.exists():
            print(f"Installing dependencies for {function_name}...")
            subprocess.run([
                sys.executable, "-m", "pip", "install",
                "-r", str(requirements_file),
                "-t", str(temp_dir),
            ], check=True)

        print(f"Creating {function_name}.zip...")
        with zipfile.ZipFile(zip_path, 'w', zipfile.ZIP_DEFLATED) as zipf:
            for root, _, files in os.walk(temp_dir):
                for file in files:
                    file_path = Path(root) / file
                    zipf.write(file_path, file_path.relative_to(temp_dir))

        shutil.rmtree(temp_dir)

        print(f"{function_name}.zip created ({zip_path.stat().st_size} bytes)")

    print("Build complete!")


if __name__ == "__main__":
    main()
