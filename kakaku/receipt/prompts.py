"""Prompts for receipt extraction and product-name normalization."""

EXTRACTION_PROMPT = """\
この画像は日本のスーパーマーケットのレシートです。
商品行をすべて抽出し、以下のJSON形式で返してください（他のテキストは不要です）:
{
  "storeName": "店舗名（読み取れなければ null）",
  "date": "購入日 YYYY-MM-DD（読み取れなければ null）",
  "items": [
    {
      "rawLine": "行全体のテキスト",
      "rawProductName": "商品名と思われる文字列",
      "rawPrice": 123,
      "rawQty": "数量（あれば）"
    }
  ]
}

小計・合計・支払・お釣りなど商品ではない行は含めないでください。
rawPrice は税込の金額を整数（円）で返してください。
"""

NORMALIZATION_PROMPT = """\
あなたは商品データ正規化の専門家です。
入力されるJSON配列はレシートから抽出した生の商品行（rawItems）です。
各行を、価格検索に使える正規形式に変換してください。

ルール:
1. 誤字や表記ゆれを直してください（例: ピーモン→ピーマン、ﾎｳﾚﾝｿｳ→ほうれん草）。
2. 略語は補ってください。
3. 商品名を normalizedName と attributes に分けてください。
   - normalizedName: 検索キーワードになる一般的で短い名称（例: キャベツ、牛乳）
   - attributes: 産地・内容量・サイズ・等級など（例: 群馬県産、1L、国産）
4. confidence (0.0〜1.0) と、変換の理由 reason を付けてください。
5. rawIndex には入力配列での位置（0始まり）を入れてください。

店舗名: {{storeName}}
地域: {{region}}

以下のJSON形式で返してください（他のテキストは不要です）:
{
  "normalizedItems": [
    {
      "rawIndex": 0,
      "normalizedName": "正規名称",
      "attributes": ["属性1", "属性2"],
      "price": 123,
      "confidence": 0.95,
      "reason": "理由"
    }
  ]
}
"""
