"""CLI entry point."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys

from dotenv import load_dotenv

from .config import load_config
from .context import AppContext
from .errors import ConfigurationError, ExtractionError, SaveError
from .models import Entry


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="kakaku",
        description="カカク: レシートの価格をみんなで共有します",
    )
    parser.add_argument(
        "--config",
        "-c",
        type=str,
        default=None,
        help="設定ファイルのパス (TOML)",
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="詳細なログを表示"
    )

    sub = parser.add_subparsers(dest="command")

    # add
    add_parser = sub.add_parser("add", help="価格を手入力で登録")
    add_parser.add_argument("name", help="商品名 (正規名称)")
    add_parser.add_argument("price", help="価格 (円)")
    add_parser.add_argument("--user", required=True, help="登録者のユーザーID")
    add_parser.add_argument("--store-id", default=None, help="店舗ID")
    add_parser.add_argument("--store-name", default=None, help="店舗名")
    add_parser.add_argument("--place-id", default=None, help="Google Place ID")
    add_parser.add_argument(
        "--attr", action="append", default=[], help="属性 (産地・内容量など、複数可)"
    )
    add_parser.add_argument("--raw-name", default=None, help="レシート上の表記")
    add_parser.add_argument("--date", default=None, help="購入日 YYYY-MM-DD")
    add_parser.add_argument("--region", default=None, help="地域")
    add_parser.add_argument(
        "--tax-excluded", action="store_true", help="税抜価格として登録"
    )

    # search
    search_parser = sub.add_parser("search", help="商品名で価格を検索")
    search_parser.add_argument("name", help="商品名 (完全一致)")
    search_parser.add_argument("--store", default=None, help="店舗IDで絞り込み")
    search_parser.add_argument("--json", action="store_true", help="JSON形式で出力")

    # recent
    recent_parser = sub.add_parser("recent", help="新着の価格を表示")
    recent_parser.add_argument("--limit", type=int, default=10, help="表示件数")
    recent_parser.add_argument("--json", action="store_true", help="JSON形式で出力")

    # stores
    stores_parser = sub.add_parser("stores", help="登録済み店舗の一覧")
    stores_parser.add_argument("--json", action="store_true", help="JSON形式で出力")

    # register-store
    reg_parser = sub.add_parser("register-store", help="店舗を登録")
    reg_parser.add_argument("--name", required=True, help="店舗名")
    reg_parser.add_argument("--place-id", required=True, help="Google Place ID")
    reg_parser.add_argument("--region", default=None, help="地域")
    reg_parser.add_argument("--lat", type=float, default=None, help="緯度")
    reg_parser.add_argument("--lng", type=float, default=None, help="経度")

    # thanks
    thanks_parser = sub.add_parser("thanks", help="エントリに「ありがとう」を送る")
    thanks_parser.add_argument("entry_id", help="エントリID")
    thanks_parser.add_argument("owner", help="エントリ登録者のユーザーID")

    # scan
    scan_parser = sub.add_parser("scan", help="レシート画像をAIで読み取って登録")
    scan_parser.add_argument("image", help="レシート画像ファイル")
    scan_parser.add_argument("--user", required=True, help="登録者のユーザーID")
    scan_parser.add_argument("--store", required=True, help="登録済み店舗のID")
    scan_parser.add_argument("--region", default=None, help="地域")
    scan_parser.add_argument(
        "--yes", "-y", action="store_true", help="確認せずに登録"
    )
    scan_parser.add_argument("--json", action="store_true", help="JSON形式で出力")

    # serve
    serve_parser = sub.add_parser("serve", help="HTTPサーバーを起動")
    serve_parser.add_argument("--host", default=None, help="待ち受けアドレス")
    serve_parser.add_argument("--port", type=int, default=None, help="ポート番号")

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    )
    load_dotenv()
    config = load_config(args.config)

    if args.command == "serve":
        _cmd_serve(config, args)
        return

    ctx = AppContext(config)
    try:
        match args.command:
            case "add":
                asyncio.run(_cmd_add(ctx, args))
            case "search":
                asyncio.run(_cmd_search(ctx, args))
            case "recent":
                asyncio.run(_cmd_recent(ctx, args))
            case "stores":
                asyncio.run(_cmd_stores(ctx, args))
            case "register-store":
                asyncio.run(_cmd_register_store(ctx, args))
            case "thanks":
                asyncio.run(_cmd_thanks(ctx, args))
            case "scan":
                asyncio.run(_cmd_scan(ctx, args))
    except ConfigurationError as e:
        print(f"設定が必要です: {e}", file=sys.stderr)
        print(
            "設定ファイルまたは環境変数 (GEMINI_API_KEY など) を確認してください。",
            file=sys.stderr,
        )
        sys.exit(2)
    except (SaveError, ExtractionError) as e:
        print(f"{e} もう一度お試しください。", file=sys.stderr)
        sys.exit(1)
    finally:
        ctx.close()


def _format_entry(entry: Entry) -> str:
    attrs = f" ({', '.join(entry.attributes)})" if entry.attributes else ""
    tax = "税込" if entry.tax_included else "税抜"
    return (
        f"  {entry.date}  {entry.normalized_name}{attrs}  "
        f"¥{entry.price:,} ({tax})  @{entry.store_name}  "
        f"🙏{entry.thanks_count}  [{entry.id}]"
    )


def _print_entries(entries: list[Entry], as_json: bool, empty_message: str) -> None:
    if as_json:
        print(json.dumps([e.to_dict() for e in entries], ensure_ascii=False, indent=2))
        return
    if not entries:
        print(empty_message)
        return
    for entry in entries:
        print(_format_entry(entry))


async def _cmd_add(ctx: AppContext, args) -> None:
    raw = {
        "normalizedName": args.name,
        "rawProductName": args.raw_name,
        "price": args.price,
        "storeId": args.store_id or args.place_id,
        "storeName": args.store_name,
        "placeId": args.place_id,
        "attributes": args.attr,
        "date": args.date,
        "region": args.region,
        "userId": args.user,
        "taxIncluded": not args.tax_excluded,
        "source": "user",
    }
    entry_id = await ctx.service.add_entry(raw)
    print(f"登録しました: {entry_id}")


async def _cmd_search(ctx: AppContext, args) -> None:
    entries = await ctx.service.search_entries(args.name, args.store)
    _print_entries(entries, args.json, f"「{args.name}」の価格は見つかりませんでした。")


async def _cmd_recent(ctx: AppContext, args) -> None:
    entries = await ctx.service.get_recent_entries(args.limit)
    _print_entries(entries, args.json, "まだ登録がありません。")


async def _cmd_stores(ctx: AppContext, args) -> None:
    stores = await ctx.service.get_all_stores()
    if args.json:
        print(json.dumps([s.to_dict() for s in stores], ensure_ascii=False, indent=2))
        return
    if not stores:
        print("登録済みの店舗がありません。")
        return
    print(f"登録済み店舗: {len(stores)} 件")
    for s in stores:
        region = f"  [{s.region}]" if s.region else ""
        print(f"  {s.name}{region}  ({s.store_id})")


async def _cmd_register_store(ctx: AppContext, args) -> None:
    location = None
    if args.lat is not None and args.lng is not None:
        location = {"lat": args.lat, "lng": args.lng}
    await ctx.service.register_store(args.name, args.place_id, args.region, location)
    print(f"店舗を登録しました: {args.name}")


async def _cmd_thanks(ctx: AppContext, args) -> None:
    await ctx.service.give_thanks(args.entry_id, args.owner)
    print("🙏 ありがとうを送りました")


async def _cmd_scan(ctx: AppContext, args) -> None:
    store = await ctx.service.get_store(args.store)
    if store is None:
        print(
            f"店舗が見つかりません: {args.store} "
            "(先に register-store で登録してください)",
            file=sys.stderr,
        )
        sys.exit(1)

    importer = ctx.importer()
    print("🔍 レシートを解析中...")
    analysis = await importer.analyze(args.image, user_id=args.user, region=args.region)

    if args.json:
        print(
            json.dumps(
                {
                    "importId": analysis.import_id,
                    "storeName": analysis.store_name,
                    "date": analysis.date,
                    "items": [
                        {
                            "rawProductName": i.raw_product_name,
                            "normalizedName": i.normalized_name,
                            "attributes": i.attributes,
                            "price": i.price,
                            "confidence": i.confidence,
                        }
                        for i in analysis.items
                    ],
                },
                ensure_ascii=False,
                indent=2,
            )
        )
    else:
        print(f"\n🧾 読み取った商品 ({len(analysis.items)} 品):")
        for i in analysis.items:
            attrs = f" ({', '.join(i.attributes)})" if i.attributes else ""
            print(f"  {i.normalized_name}{attrs}  ¥{i.price:,}  ← {i.raw_product_name}")

    if not args.yes:
        answer = input(f"\n{store.name} の価格として登録しますか? [y/N]: ").strip().lower()
        if answer not in ("y", "yes"):
            print("登録を中止しました。")
            return

    entry_ids = await importer.confirm(
        analysis, store=store, user_id=args.user, region=args.region
    )
    print(f"✅ {len(entry_ids)} 件登録しました")


def _cmd_serve(config, args) -> None:
    try:
        import uvicorn
    except ImportError:
        print("uvicorn が必要です: pip install uvicorn", file=sys.stderr)
        sys.exit(1)

    from .web import create_app

    uvicorn.run(
        create_app(config),
        host=args.host or config.server.host,
        port=args.port or config.server.port,
    )
