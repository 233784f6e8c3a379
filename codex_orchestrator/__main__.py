from codex_orchestrator.cli import main

main()
