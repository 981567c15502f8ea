"""MCP-compatible tool schema for AI agents."""

from __future__ import annotations

from ._version import __version__


def get_tool_schema() -> dict:
    """Generate MCP-compatible tool schema for AI agents."""
    return {
        "name": "git-unsaved",
        "version": __version__,
        "description": "Recursively scan a directory for Git repositories holding work that would be lost if they were deleted: unpushed commits, unpushed local branches or tags, uncommitted changes and untracked files. Read-only unless fetch or pull is requested.",
        "usage": "git-unsaved [options] <directory>",
        "tools": [
            {
                "name": "scan",
                "description": "Scan a directory tree. Repositories are not descended into once found. Each reported repository carries four flags: ahead (current branch has commits its upstream lacks), unpushed_references (local-only commits or tags, only with deep), uncommitted_changes and untracked_files. Use json for machine parsing.",
                "inputSchema": {
                    "type": "object",
                    "properties": {
                        "directory": {
                            "type": "string",
                            "description": "Directory to scan for repositories",
                        },
                        "all": {
                            "type": "boolean",
                            "description": "Also report repositories without any issues",
                            "default": False,
                        },
                        "fetch": {
                            "type": "boolean",
                            "description": "Fetch each repository before checking it (contacts remotes)",
                            "default": False,
                        },
                        "pull": {
                            "type": "boolean",
                            "description": "Fast-forward-only pull before checking (modifies working trees)",
                            "default": False,
                        },
                        "deep": {
                            "type": "boolean",
                            "description": "Compare all local branches and tags against the remote",
                            "default": False,
                        },
                        "verbose": {
                            "type": "boolean",
                            "description": "List untracked files, changed files and unpushed references",
                            "default": False,
                        },
                        "jobs": {
                            "type": "integer",
                            "description": "Repositories inspected in parallel (env: GIT_UNSAVED_JOBS)",
                            "default": 1,
                        },
                        "timeout": {
                            "type": "number",
                            "description": "Seconds allowed per fetch, pull or remote tag listing (env: GIT_UNSAVED_TIMEOUT)",
                            "default": 120,
                        },
                        "remote": {
                            "type": "string",
                            "description": "Remote used for tag comparison",
                            "default": "origin",
                        },
                        "json": {
                            "type": "boolean",
                            "description": "Output as JSON for machine parsing",
                            "default": False,
                        },
                    },
                    "required": ["directory"],
                },
                "outputSchema": {
                    "type": "object",
                    "properties": {
                        "repositories": {
                            "type": "array",
                            "items": {
                                "type": "object",
                                "properties": {
                                    "path": {"type": "string"},
                                    "status": {
                                        "type": "object",
                                        "properties": {
                                            "ahead": {"type": "boolean"},
                                            "unpushed_references": {"type": "boolean"},
                                            "uncommitted_changes": {"type": "boolean"},
                                            "untracked_files": {"type": "boolean"},
                                        },
                                    },
                                    "unpushed_references": {"type": "array"},
                                    "untracked_files": {"type": "array"},
                                    "dirty_files": {"type": "array"},
                                    "sync_output": {"type": "string"},
                                },
                            },
                        },
                        "summary": {"type": "object"},
                    },
                },
            },
        ],
        "exit_codes": {
            "0": "Scan completed (issues are reported in output, not exit code)",
            "2": "Usage error: missing directory, unknown option or bad value",
        },
    }
