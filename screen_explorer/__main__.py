import argparse
import json
import logging
import os
import shutil
from dataclasses import replace

import networkx as nx

from .browser_driver import BrowserDriver
from .config import load_settings
from .explorer import DFSExplorer, Finished
from .session import ExplorationSession
from .state_matcher import StateMatcher
from .strategies import detect_strategy


def main() -> None:
    settings = load_settings()
    parser = argparse.ArgumentParser(description="Explore a web app and compile the screens into skills")
    parser.add_argument("--url", required=True, help="Start URL of the app to explore")
    parser.add_argument("--app", required=True, help="App name used for the launch step and skill names")
    parser.add_argument("--goal", default="", help="Optional goal; discovery mode when omitted")
    parser.add_argument("--strategy", choices=["mobile", "social", "desktop"], default=settings.strategy)
    parser.add_argument("--max-depth", type=int, default=settings.budget.max_depth)
    parser.add_argument("--max-screens", type=int, default=settings.budget.max_screens)
    parser.add_argument("--max-time", type=float, default=settings.budget.max_time_seconds, help="Seconds")
    parser.add_argument("--headless", action="store_true", help="Run browser in headless mode")
    parser.add_argument("--out", default=settings.output_dir, help="Directory to save run artefacts")
    parser.add_argument("--log-level", default=settings.log_level)
    args = parser.parse_args()

    logging.basicConfig(level=args.log_level.upper())

    budget = replace(
        settings.budget,
        max_depth=args.max_depth,
        max_screens=args.max_screens,
        max_time_seconds=args.max_time,
    )
    if os.path.exists(args.out):
        shutil.rmtree(args.out)
    os.makedirs(args.out, exist_ok=True)

    matcher = StateMatcher(threshold=settings.similarity_threshold)
    session = ExplorationSession(matcher=matcher)
    strategy = detect_strategy(args.app, explicit=args.strategy)

    print(f"Starting exploration of {args.url}")
    with BrowserDriver(
        args.url,
        headless=args.headless,
        settle_seconds=settings.settle_seconds,
        screenshot_dir=os.path.join(args.out, "screens"),
    ) as driver:
        session.start(args.app, goal=args.goal)
        session.capture_snapshot(driver.observe())
        explorer = DFSExplorer(session, strategy, perception=driver, executor=driver, budget=budget)
        explorer.mark_started()
        result = explorer.run()
        # snapshot the graph before a final bundle resets the session
        graph = explorer.session.graph.snapshot() if not explorer.completed else None

    if not isinstance(result, Finished):
        print(f"Exploration paused: {result.reason.value}")
        if graph is not None:
            _write_graph(graph, args.out)
        return

    stats = explorer.stats
    print(f"Exploration finished. Screens: {stats.node_count}, actions: {stats.action_count}")
    if explorer.final_snapshot is not None:
        _write_graph(explorer.final_snapshot, args.out)
    for skill in result.bundle.skills:
        path = os.path.join(args.out, f"{skill.slug}.md")
        with open(path, "w", encoding="utf-8") as fh:
            fh.write(skill.render())
        print("Wrote", path)


def _write_graph(graph, out_dir: str) -> None:
    with open(os.path.join(out_dir, "graph.json"), "w", encoding="utf-8") as fh:
        json.dump(graph.to_json(), fh, indent=2)
    nx.write_graphml(graph.to_networkx(), os.path.join(out_dir, "graph.graphml"))


if __name__ == "__main__":
    main()
