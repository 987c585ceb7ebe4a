from hookwarden import HooksBridge, HooksConfig
from hookwarden.runtime import create_test_context


def main() -> None:
    config = HooksConfig.model_validate(
        {
            "settings": {"enabled": True},
            "hooks": {
                "PreToolUse": [
                    {"id": "no-rm", "matcher": "command matches 'rm -rf'", "action": "block", "message": "No rm -rf"},
                    {"id": "push", "matcher": "command contains 'git push'", "action": "warn"},
                ]
            },
        }
    )
    bridge = HooksBridge(config=config)

    for command in ("rm -rf /", "git push origin main", "ls"):
        result = bridge.run("PreToolUse", create_test_context(command=command))
        print(f"{command!r}: blocked={result.blocked} warnings={len(result.warnings)}")


if __name__ == "__main__":
    main()
