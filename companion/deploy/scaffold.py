"""Project scaffolds for generated code.

Builds the complete, deterministic file set for a deployment: fixed
manifest/build-config/entry files for the chosen template with the
directive's code dropped into its slots. Nothing here touches the network.
"""

from __future__ import annotations

import base64
import json
import logging
import posixpath

from pydantic import BaseModel, Field

from companion.schemas.config import ProjectTemplate
from companion.schemas.directive import DeployDirective, SingleFileCode

logger = logging.getLogger(__name__)


class ProjectFileSet(BaseModel):
    """Ordered mapping of relative path to file content."""

    files: dict[str, str] = Field(default_factory=dict, description="Path to content")

    def __len__(self) -> int:
        return len(self.files)

    def paths(self) -> list[str]:
        return list(self.files)

    def encoded(self) -> list[dict[str, str]]:
        """Files in the hosting API's base64 upload format."""
        return [
            {
                "file": path,
                "data": base64.b64encode(content.encode("utf-8", "replace")).decode("ascii"),
                "encoding": "base64",
            }
            for path, content in self.files.items()
        ]


# ── Next.js template ─────────────────────────────────────────────

_NEXT_APP_DIR = "src/app"

# Bare names the model uses for the Next.js entry files
_NEXT_SLOTS: dict[str, str] = {
    "page.tsx": f"{_NEXT_APP_DIR}/page.tsx",
    "globals.css": f"{_NEXT_APP_DIR}/globals.css",
    "layout.tsx": f"{_NEXT_APP_DIR}/layout.tsx",
}

_NEXT_CONFIG = """import type { NextConfig } from "next";

const nextConfig: NextConfig = {};

export default nextConfig;
"""

_POSTCSS_CONFIG = """/** @type {import('postcss-load-config').Config} */
const config = {
  plugins: {
    "@tailwindcss/postcss": {},
  },
};

export default config;
"""

_DEFAULT_GLOBALS_CSS = """@import "tailwindcss";

:root {
  --background: #09090b;
  --foreground: #fafafa;
}

body {
  color: var(--foreground);
  background: var(--background);
}
"""

_DEFAULT_PAGE_TSX = """'use client';

export default function Home() {
  return (
    <main className="min-h-screen flex items-center justify-center">
      <h1 className="text-3xl font-bold">Coming soon</h1>
    </main>
  );
}
"""

_LAYOUT_TSX = """import type {{ Metadata }} from "next";
import "./globals.css";

export const metadata: Metadata = {{
  title: {title},
  description: "Built with Code Companion",
}};

export default function RootLayout({{
  children,
}}: Readonly<{{
  children: React.ReactNode;
}}>) {{
  return (
    <html lang="en">
      <body className="antialiased">
        {{children}}
      </body>
    </html>
  );
}}
"""


def _package_json(project_name: str) -> str:
    return json.dumps(
        {
            "name": project_name,
            "version": "0.1.0",
            "private": True,
            "scripts": {
                "dev": "next dev",
                "build": "next build",
                "start": "next start",
            },
            "dependencies": {
                "next": "^15.0.0",
                "react": "^19.0.0",
                "react-dom": "^19.0.0",
            },
            "devDependencies": {
                "@types/node": "^20",
                "@types/react": "^19",
                "@types/react-dom": "^19",
                "typescript": "^5",
                "tailwindcss": "^4",
                "@tailwindcss/postcss": "^4",
            },
        },
        indent=2,
    )


def _tsconfig_json() -> str:
    return json.dumps(
        {
            "compilerOptions": {
                "target": "ES2017",
                "lib": ["dom", "dom.iterable", "esnext"],
                "allowJs": True,
                "skipLibCheck": True,
                "strict": True,
                "noEmit": True,
                "esModuleInterop": True,
                "module": "esnext",
                "moduleResolution": "bundler",
                "resolveJsonModule": True,
                "isolatedModules": True,
                "jsx": "preserve",
                "incremental": True,
                "plugins": [{"name": "next"}],
                "paths": {"@/*": ["./src/*"]},
            },
            "include": ["next-env.d.ts", "**/*.ts", "**/*.tsx", ".next/types/**/*.ts"],
            "exclude": ["node_modules"],
        },
        indent=2,
    )


def _nextjs_files(directive: DeployDirective) -> dict[str, str]:
    if isinstance(directive.code, SingleFileCode):
        provided = {_NEXT_SLOTS["page.tsx"]: directive.code.content}
    else:
        provided = _place_files(directive.code.files, _NEXT_SLOTS, _NEXT_APP_DIR)

    layout = _LAYOUT_TSX.format(title=json.dumps(directive.project_name))
    files = {
        "package.json": _package_json(directive.project_name),
        "next.config.ts": _NEXT_CONFIG,
        "tsconfig.json": _tsconfig_json(),
        "postcss.config.mjs": _POSTCSS_CONFIG,
        _NEXT_SLOTS["layout.tsx"]: provided.pop(_NEXT_SLOTS["layout.tsx"], layout),
        _NEXT_SLOTS["globals.css"]: provided.pop(
            _NEXT_SLOTS["globals.css"], _DEFAULT_GLOBALS_CSS
        ),
        _NEXT_SLOTS["page.tsx"]: provided.pop(_NEXT_SLOTS["page.tsx"], _DEFAULT_PAGE_TSX),
    }
    for path, content in provided.items():
        files.setdefault(path, content)
    return files


# ── Static template ──────────────────────────────────────────────

_DEFAULT_INDEX_HTML = """<!DOCTYPE html>
<html lang="en">
  <head><meta charset="utf-8"><title>{title}</title></head>
  <body><h1>Coming soon</h1></body>
</html>
"""


def _static_files(directive: DeployDirective) -> dict[str, str]:
    if isinstance(directive.code, SingleFileCode):
        return {"index.html": directive.code.content}

    provided = _place_files(directive.code.files, {}, "")
    files = {
        "index.html": provided.pop(
            "index.html", _DEFAULT_INDEX_HTML.format(title=directive.project_name)
        )
    }
    files.update(provided)
    return files


# ── Shared helpers ───────────────────────────────────────────────


def _safe_path(path: str) -> str | None:
    """Normalize a relative path, or None if it escapes the project root."""
    cleaned = path.strip().replace("\\", "/")
    if not cleaned or cleaned.startswith("/"):
        return None
    normalized = posixpath.normpath(cleaned)
    if normalized == "." or normalized.startswith("../") or normalized == "..":
        return None
    return normalized


def _place_files(
    files: dict[str, str], slots: dict[str, str], bare_dir: str
) -> dict[str, str]:
    """Map directive file names onto project paths.

    Slot names go to their fixed location, other bare names go under
    bare_dir, and anything with a directory is kept as-is. Unsafe paths are
    dropped.
    """
    placed: dict[str, str] = {}
    for name, content in files.items():
        path = _safe_path(name)
        if path is None:
            logger.warning("Dropping unsafe file path from directive: %r", name)
            continue
        if path in slots:
            path = slots[path]
        elif "/" not in path and bare_dir:
            path = f"{bare_dir}/{path}"
        placed[path] = content
    return placed


_BUILDERS = {
    ProjectTemplate.NEXTJS: _nextjs_files,
    ProjectTemplate.STATIC: _static_files,
}

_PROJECT_SETTINGS: dict[ProjectTemplate, dict[str, str | None]] = {
    ProjectTemplate.NEXTJS: {
        "framework": "nextjs",
        "installCommand": "npm install",
        "buildCommand": "npm run build",
        "outputDirectory": ".next",
    },
    ProjectTemplate.STATIC: {
        "framework": None,
        "installCommand": None,
        "buildCommand": None,
        "outputDirectory": None,
    },
}


def build_file_set(
    directive: DeployDirective, template: ProjectTemplate = ProjectTemplate.NEXTJS
) -> ProjectFileSet:
    """Generate the full project for a directive.

    Args:
        directive: A validated directive (from the finalizer).
        template: Project scaffold to use.

    Returns:
        ProjectFileSet with scaffold files first, then any extra files the
        directive supplied, in directive order.
    """
    return ProjectFileSet(files=_BUILDERS[template](directive))


def project_settings(template: ProjectTemplate) -> dict[str, str | None]:
    """Build/runtime settings the hosting provider needs for a template."""
    return dict(_PROJECT_SETTINGS[template])
