"""
剧情图格式转换命令行工具

Run:
    cd backend
    python -m storyflow.tools.convert_cli convert story.json -o story_data.json --to story-data
    python -m storyflow.tools.convert_cli inspect story.json
    python -m storyflow.tools.convert_cli parse-text "[CP][起点]<金币 +10>开场"
"""
import argparse
import json
import logging
from pathlib import Path
from typing import List, Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from storyflow.config import settings
from storyflow.converters import DocumentFormat, detect_format, export_document, load_document
from storyflow.errors import StoryflowError
from storyflow.models.nodes import NodeKind, StoryGraph
from storyflow.services.node_registry import parse_node_text

console = Console()


def _read_json(path: Path):
    return json.loads(path.read_text(encoding="utf-8"))


def _load_graph(path: Path) -> StoryGraph:
    document = _read_json(path)
    return load_document(document)


def cmd_convert(args: argparse.Namespace) -> int:
    graph = _load_graph(Path(args.input))
    document = export_document(graph, DocumentFormat(args.to))
    output = Path(args.output)
    output.write_text(json.dumps(document, ensure_ascii=False, indent=2), encoding="utf-8")
    console.print(
        f"[green]✓ 已导出 {args.to}[/green] nodes={len(graph.nodes)} "
        f"variables={len(graph.variables)} → {output}"
    )
    return 0


def cmd_inspect(args: argparse.Namespace) -> int:
    path = Path(args.input)
    document = _read_json(path)
    document_format = detect_format(document)
    graph = load_document(document, document_format)

    console.print(Panel(f"{path.name} ({document_format.value})", border_style="cyan", padding=(0, 2)))

    table = Table(title="节点统计", border_style="dim", show_header=True)
    table.add_column("类型", style="cyan")
    table.add_column("数量", style="white", justify="right")
    for kind in NodeKind:
        table.add_row(kind.value, str(len(graph.nodes_of(kind))))
    console.print(table)

    if graph.variables or graph.supplemental_variables:
        variables = Table(title="变量", border_style="dim", show_header=True)
        variables.add_column("名称", style="cyan")
        variables.add_column("持久化", style="white")
        variables.add_column("范围", style="white")
        variables.add_column("来源", style="dim")
        for variable in graph.variables:
            variables.add_row(
                variable.name,
                variable.persistence_type.value,
                f"{variable.min_value}..{variable.max_value}",
                "变量表",
            )
        for variable in graph.supplemental_variables:
            variables.add_row(
                variable.name,
                variable.persistence_type.value,
                f"{variable.min_value}..{variable.max_value}",
                "补充",
            )
        console.print(variables)

    diagnostics = graph.diagnostics
    console.print(f"起点: [bold]{graph.start_node_id or '-'}[/bold]")
    console.print(
        f"[dim]跳过实体 {len(diagnostics.skipped_entity_ids)}，"
        f"成环绕行 {diagnostics.cyclic_bypass_count}，"
        f"未识别标签 {diagnostics.unparsed_tags}，"
        f"无效节点 {len(diagnostics.invalid_nodes)}[/dim]"
    )
    return 0


def cmd_parse_text(args: argparse.Namespace) -> int:
    node = parse_node_text(args.text, args.kind)
    payload = node.model_dump(by_alias=True, mode="json", exclude_defaults=not args.full)
    console.print_json(json.dumps(payload, ensure_ascii=False))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Storyflow 剧情图转换工具")
    subparsers = parser.add_subparsers(dest="command", required=True)

    convert = subparsers.add_parser("convert", help="转换文档格式（来源格式自动识别）")
    convert.add_argument("input", help="输入 JSON 文件")
    convert.add_argument("-o", "--output", required=True, help="输出 JSON 文件")
    convert.add_argument(
        "--to",
        required=True,
        choices=[item.value for item in DocumentFormat],
        help="目标格式",
    )
    convert.set_defaults(func=cmd_convert)

    inspect = subparsers.add_parser("inspect", help="查看文档的节点、变量与诊断信息")
    inspect.add_argument("input", help="输入 JSON 文件")
    inspect.set_defaults(func=cmd_inspect)

    parse_text = subparsers.add_parser("parse-text", help="解析单个节点文本")
    parse_text.add_argument("text", help="节点文本")
    parse_text.add_argument("--kind", choices=[kind.value for kind in NodeKind], default=None)
    parse_text.add_argument("--full", action="store_true", help="输出所有字段（含默认值）")
    parse_text.set_defaults(func=cmd_parse_text)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=settings.log_level)

    try:
        return args.func(args)
    except StoryflowError as exc:
        console.print(f"[red]✗ {exc}[/red]")
        return 2
    except (OSError, json.JSONDecodeError) as exc:
        console.print(f"[red]✗ 读取失败: {exc}[/red]")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
