"""
Per-locale message tables for composed responses.

Every locale carries the same keys; lookups for an unknown locale or key fall back to
English so a composed message is never empty.
"""
from __future__ import annotations

from typing import Dict, List, Optional

DEFAULT_LOCALE = "en"
SUPPORTED_LOCALES = ("en", "fr", "es", "de", "it", "pt", "ja", "zh")


def normalize_locale(locale: Optional[str]) -> str:
    """'fr-CA' -> 'fr'; anything outside the supported set -> 'en'."""
    if not locale or not isinstance(locale, str):
        return DEFAULT_LOCALE
    lang = locale.strip().lower().replace("_", "-").split("-")[0]
    return lang if lang in SUPPORTED_LOCALES else DEFAULT_LOCALE


MESSAGES: Dict[str, Dict[str, str]] = {
    "en": {
        "showing_products": "Here are some products you might like:",
        "featured_products": "Check out our featured products:",
        "no_products": "I don't have product information available at the moment. Please contact us for assistance.",
        "help_options": "I can help you with:\n• Browse products\n• Search by keyword\n• View categories\n• Check prices and availability\n\nWhat would you like to explore?",
        "semantic_excellent": "I found some excellent matches for \"{query}\"! These products closely match what you're looking for:",
        "semantic_good": "Here are some good options that match your search for \"{query}\":",
        "semantic_related": "Based on your search for \"{query}\", here are some products you might be interested in:",
        "price_inquiry": "I can help you find products within your budget. What price range are you looking for?",
        "size_fit": "I can help you find the right size. What type of product are you looking for, and what are your measurements?",
        "support": "I'm here to help with any issues you're experiencing. Can you tell me more about what you need assistance with?",
        "greeting": "Hello! I'm your shopping assistant. I can help you find products, answer questions about pricing and shipping, and give personalized recommendations. What are you looking for today?",
        "thanks": "You're welcome! Is there anything else I can help you with?",
        "comparison": "I'd be happy to help you compare products. Which products would you like to compare?",
        "availability": "I can check product availability for you. Which product are you interested in?",
        "shipping_prefix": "Here's our shipping policy:",
        "returns_prefix": "Here's our return policy:",
        "shipping_generic": "For shipping information, please check our shipping page or contact customer support. Shipping times and costs vary by location.",
        "returns_generic": "For return and refund information, please check our returns page or contact customer support. We're happy to help with any return requests.",
        "apology": "Sorry, I'm having trouble answering right now. Please try again in a moment or contact the store for help.",
        "badge_top_match": "Top match",
        "cta_view": "View Product",
        "low_stock": "Only {count} left!",
        "action_compare": "Compare products",
        "action_browse": "Browse all products",
        "action_contact": "Contact support",
    },
    "fr": {
        "showing_products": "Voici quelques produits qui pourraient vous intéresser :",
        "featured_products": "Découvrez nos produits en vedette :",
        "no_products": "Je n'ai pas d'informations sur les produits disponibles pour le moment. Veuillez nous contacter pour obtenir de l'aide.",
        "help_options": "Je peux vous aider avec :\n• Parcourir les produits\n• Rechercher par mot-clé\n• Voir les catégories\n• Vérifier les prix et la disponibilité\n\nQue souhaitez-vous explorer ?",
        "semantic_excellent": "J'ai trouvé d'excellentes correspondances pour « {query} » ! Ces produits correspondent à ce que vous cherchez :",
        "semantic_good": "Voici quelques bonnes options pour votre recherche « {query} » :",
        "semantic_related": "D'après votre recherche « {query} », voici des produits qui pourraient vous intéresser :",
        "price_inquiry": "Je peux vous aider à trouver des produits dans votre budget. Quelle gamme de prix recherchez-vous ?",
        "size_fit": "Je peux vous aider à trouver la bonne taille. Quel type de produit cherchez-vous et quelles sont vos mesures ?",
        "support": "Je suis là pour vous aider. Pouvez-vous m'en dire plus sur ce dont vous avez besoin ?",
        "greeting": "Bonjour ! Je suis votre assistant shopping. Je peux vous aider à trouver des produits et répondre à vos questions sur les prix et la livraison. Que recherchez-vous aujourd'hui ?",
        "thanks": "Avec plaisir ! Puis-je vous aider avec autre chose ?",
        "comparison": "Je serais ravi de vous aider à comparer des produits. Lesquels souhaitez-vous comparer ?",
        "availability": "Je peux vérifier la disponibilité pour vous. Quel produit vous intéresse ?",
        "shipping_prefix": "Voici notre politique de livraison :",
        "returns_prefix": "Voici notre politique de retour :",
        "shipping_generic": "Pour les informations de livraison, veuillez consulter notre page d'expédition ou contacter le service client. Les délais et coûts varient selon la destination.",
        "returns_generic": "Pour les informations de retour et remboursement, veuillez consulter notre page retours ou contacter le service client. Nous sommes heureux de vous aider.",
        "apology": "Désolé, je rencontre un problème pour répondre. Veuillez réessayer dans un instant ou contacter la boutique.",
        "badge_top_match": "Meilleur choix",
        "cta_view": "Voir le produit",
        "low_stock": "Plus que {count} en stock !",
        "action_compare": "Comparer les produits",
        "action_browse": "Voir tous les produits",
        "action_contact": "Contacter le support",
    },
    "es": {
        "showing_products": "Aquí hay algunos productos que podrían interesarte:",
        "featured_products": "Echa un vistazo a nuestros productos destacados:",
        "no_products": "No tengo información de productos disponible en este momento. Por favor contáctenos para obtener ayuda.",
        "help_options": "Puedo ayudarte con:\n• Explorar productos\n• Buscar por palabra clave\n• Ver categorías\n• Consultar precios y disponibilidad\n\n¿Qué te gustaría explorar?",
        "semantic_excellent": "¡Encontré excelentes coincidencias para \"{query}\"! Estos productos se ajustan a lo que buscas:",
        "semantic_good": "Aquí hay buenas opciones para tu búsqueda \"{query}\":",
        "semantic_related": "Según tu búsqueda \"{query}\", estos productos podrían interesarte:",
        "price_inquiry": "Puedo ayudarte a encontrar productos dentro de tu presupuesto. ¿Qué rango de precio buscas?",
        "size_fit": "Puedo ayudarte a encontrar la talla adecuada. ¿Qué tipo de producto buscas y cuáles son tus medidas?",
        "support": "Estoy aquí para ayudarte. ¿Puedes contarme más sobre lo que necesitas?",
        "greeting": "¡Hola! Soy tu asistente de compras. Puedo ayudarte a encontrar productos y responder preguntas sobre precios y envíos. ¿Qué buscas hoy?",
        "thanks": "¡De nada! ¿Hay algo más en lo que pueda ayudarte?",
        "comparison": "Con gusto te ayudo a comparar productos. ¿Cuáles quieres comparar?",
        "availability": "Puedo comprobar la disponibilidad por ti. ¿Qué producto te interesa?",
        "shipping_prefix": "Aquí está nuestra política de envío:",
        "returns_prefix": "Aquí está nuestra política de devoluciones:",
        "shipping_generic": "Para información de envío, consulte nuestra página de envíos o contacte atención al cliente. Los tiempos y costos varían según la ubicación.",
        "returns_generic": "Para información sobre devoluciones y reembolsos, consulte nuestra página de devoluciones o contacte atención al cliente. Estaremos encantados de ayudarle.",
        "apology": "Lo siento, tengo problemas para responder ahora. Inténtalo de nuevo en un momento o contacta con la tienda.",
        "badge_top_match": "Mejor opción",
        "cta_view": "Ver producto",
        "low_stock": "¡Solo quedan {count}!",
        "action_compare": "Comparar productos",
        "action_browse": "Ver todos los productos",
        "action_contact": "Contactar soporte",
    },
    "de": {
        "showing_products": "Hier sind einige Produkte, die Ihnen gefallen könnten:",
        "featured_products": "Schauen Sie sich unsere ausgewählten Produkte an:",
        "no_products": "Ich habe derzeit keine Produktinformationen verfügbar. Bitte kontaktieren Sie uns für Hilfe.",
        "help_options": "Ich kann Ihnen helfen mit:\n• Produkte durchsuchen\n• Nach Stichwort suchen\n• Kategorien anzeigen\n• Preise und Verfügbarkeit prüfen\n\nWas möchten Sie erkunden?",
        "semantic_excellent": "Ich habe hervorragende Treffer für „{query}“ gefunden! Diese Produkte passen genau zu Ihrer Suche:",
        "semantic_good": "Hier sind gute Optionen für Ihre Suche nach „{query}“:",
        "semantic_related": "Basierend auf Ihrer Suche nach „{query}“ könnten Sie diese Produkte interessieren:",
        "price_inquiry": "Ich kann Ihnen helfen, Produkte in Ihrem Budget zu finden. Welche Preisspanne suchen Sie?",
        "size_fit": "Ich helfe Ihnen, die richtige Größe zu finden. Welche Art von Produkt suchen Sie und wie sind Ihre Maße?",
        "support": "Ich helfe Ihnen gerne weiter. Können Sie mir mehr über Ihr Anliegen erzählen?",
        "greeting": "Hallo! Ich bin Ihr Einkaufsassistent. Ich helfe Ihnen, Produkte zu finden, und beantworte Fragen zu Preisen und Versand. Was suchen Sie heute?",
        "thanks": "Gern geschehen! Kann ich Ihnen noch bei etwas anderem helfen?",
        "comparison": "Gerne helfe ich Ihnen beim Vergleichen. Welche Produkte möchten Sie vergleichen?",
        "availability": "Ich kann die Verfügbarkeit für Sie prüfen. Für welches Produkt interessieren Sie sich?",
        "shipping_prefix": "Hier ist unsere Versandrichtlinie:",
        "returns_prefix": "Hier ist unsere Rückgaberichtlinie:",
        "shipping_generic": "Für Versandinformationen besuchen Sie bitte unsere Versandseite oder kontaktieren Sie den Kundenservice. Lieferzeiten und Kosten variieren je nach Standort.",
        "returns_generic": "Für Rückgabe- und Erstattungsinformationen besuchen Sie bitte unsere Rückgabeseite oder kontaktieren Sie den Kundenservice. Wir helfen Ihnen gerne.",
        "apology": "Entschuldigung, ich kann gerade nicht antworten. Bitte versuchen Sie es gleich noch einmal oder kontaktieren Sie den Shop.",
        "badge_top_match": "Top-Treffer",
        "cta_view": "Produkt ansehen",
        "low_stock": "Nur noch {count} verfügbar!",
        "action_compare": "Produkte vergleichen",
        "action_browse": "Alle Produkte anzeigen",
        "action_contact": "Support kontaktieren",
    },
    "it": {
        "showing_products": "Ecco alcuni prodotti che potrebbero piacerti:",
        "featured_products": "Dai un'occhiata ai nostri prodotti in evidenza:",
        "no_products": "Non ho informazioni sui prodotti disponibili al momento. Contattaci per assistenza.",
        "help_options": "Posso aiutarti con:\n• Sfogliare prodotti\n• Cercare per parola chiave\n• Visualizzare categorie\n• Controllare prezzi e disponibilità\n\nCosa vorresti esplorare?",
        "semantic_excellent": "Ho trovato ottime corrispondenze per \"{query}\"! Questi prodotti corrispondono a ciò che cerchi:",
        "semantic_good": "Ecco alcune buone opzioni per la tua ricerca \"{query}\":",
        "semantic_related": "In base alla tua ricerca \"{query}\", ecco alcuni prodotti che potrebbero interessarti:",
        "price_inquiry": "Posso aiutarti a trovare prodotti nel tuo budget. Quale fascia di prezzo stai cercando?",
        "size_fit": "Posso aiutarti a trovare la taglia giusta. Che tipo di prodotto cerchi e quali sono le tue misure?",
        "support": "Sono qui per aiutarti. Puoi dirmi di più su ciò di cui hai bisogno?",
        "greeting": "Ciao! Sono il tuo assistente per lo shopping. Posso aiutarti a trovare prodotti e rispondere a domande su prezzi e spedizioni. Cosa cerchi oggi?",
        "thanks": "Prego! C'è altro con cui posso aiutarti?",
        "comparison": "Sarò felice di aiutarti a confrontare i prodotti. Quali vorresti confrontare?",
        "availability": "Posso verificare la disponibilità per te. Quale prodotto ti interessa?",
        "shipping_prefix": "Ecco la nostra politica di spedizione:",
        "returns_prefix": "Ecco la nostra politica di reso:",
        "shipping_generic": "Per informazioni sulla spedizione, consulta la nostra pagina spedizioni o contatta l'assistenza clienti. Tempi e costi variano in base alla località.",
        "returns_generic": "Per informazioni su resi e rimborsi, consulta la nostra pagina resi o contatta l'assistenza clienti. Saremo lieti di aiutarti.",
        "apology": "Spiacente, al momento ho difficoltà a rispondere. Riprova tra poco o contatta il negozio.",
        "badge_top_match": "Scelta migliore",
        "cta_view": "Vedi prodotto",
        "low_stock": "Solo {count} rimasti!",
        "action_compare": "Confronta prodotti",
        "action_browse": "Vedi tutti i prodotti",
        "action_contact": "Contatta supporto",
    },
    "pt": {
        "showing_products": "Aqui estão alguns produtos que você pode gostar:",
        "featured_products": "Confira nossos produtos em destaque:",
        "no_products": "Não tenho informações de produtos disponíveis no momento. Entre em contato conosco para obter ajuda.",
        "help_options": "Posso ajudá-lo com:\n• Navegar produtos\n• Pesquisar por palavra-chave\n• Ver categorias\n• Verificar preços e disponibilidade\n\nO que você gostaria de explorar?",
        "semantic_excellent": "Encontrei ótimas correspondências para \"{query}\"! Estes produtos combinam com o que você procura:",
        "semantic_good": "Aqui estão boas opções para sua busca por \"{query}\":",
        "semantic_related": "Com base na sua busca por \"{query}\", aqui estão alguns produtos que podem interessar:",
        "price_inquiry": "Posso ajudá-lo a encontrar produtos dentro do seu orçamento. Que faixa de preço você está procurando?",
        "size_fit": "Posso ajudá-lo a encontrar o tamanho certo. Que tipo de produto você procura e quais são suas medidas?",
        "support": "Estou aqui para ajudar. Pode me contar mais sobre o que você precisa?",
        "greeting": "Olá! Sou seu assistente de compras. Posso ajudá-lo a encontrar produtos e responder perguntas sobre preços e envio. O que você procura hoje?",
        "thanks": "De nada! Posso ajudar com mais alguma coisa?",
        "comparison": "Terei prazer em ajudá-lo a comparar produtos. Quais você gostaria de comparar?",
        "availability": "Posso verificar a disponibilidade para você. Qual produto lhe interessa?",
        "shipping_prefix": "Aqui está nossa política de envio:",
        "returns_prefix": "Aqui está nossa política de devolução:",
        "shipping_generic": "Para informações de envio, consulte nossa página de envio ou entre em contato com o suporte ao cliente. Prazos e custos variam por localização.",
        "returns_generic": "Para informações sobre devoluções e reembolsos, consulte nossa página de devoluções ou entre em contato com o suporte ao cliente. Teremos prazer em ajudar.",
        "apology": "Desculpe, estou com dificuldades para responder agora. Tente novamente em instantes ou entre em contato com a loja.",
        "badge_top_match": "Melhor escolha",
        "cta_view": "Ver produto",
        "low_stock": "Restam apenas {count}!",
        "action_compare": "Comparar produtos",
        "action_browse": "Ver todos os produtos",
        "action_contact": "Contatar suporte",
    },
    "ja": {
        "showing_products": "こちらはあなたが気に入るかもしれない製品です：",
        "featured_products": "おすすめ製品をチェック：",
        "no_products": "現在、製品情報が利用できません。サポートについてはお問い合わせください。",
        "help_options": "お手伝いできること：\n• 製品の閲覧\n• キーワード検索\n• カテゴリ表示\n• 価格と在庫確認\n\n何を探索しますか？",
        "semantic_excellent": "「{query}」にぴったりの製品が見つかりました！",
        "semantic_good": "「{query}」の検索に合う製品はこちらです：",
        "semantic_related": "「{query}」の検索に基づき、こちらの製品はいかがでしょうか：",
        "price_inquiry": "ご予算内で製品を見つけるお手伝いをします。どの価格帯をお探しですか？",
        "size_fit": "適切なサイズ選びをお手伝いします。どのような製品をお探しで、サイズはいくつですか？",
        "support": "お困りのことがあればお手伝いします。詳しく教えていただけますか？",
        "greeting": "こんにちは！ショッピングアシスタントです。製品探しや価格・配送に関するご質問にお答えします。本日は何をお探しですか？",
        "thanks": "どういたしまして！他にお手伝いできることはありますか？",
        "comparison": "製品の比較をお手伝いします。どの製品を比較しますか？",
        "availability": "在庫状況をお調べします。どの製品に興味がありますか？",
        "shipping_prefix": "配送ポリシー：",
        "returns_prefix": "返品ポリシー：",
        "shipping_generic": "配送情報については、お問い合わせいただくか、ストアポリシーをご確認ください。",
        "returns_generic": "返品情報については、お問い合わせいただくか、ストアポリシーをご確認ください。",
        "apology": "申し訳ありません、現在応答できません。しばらくしてから再度お試しいただくか、ストアにお問い合わせください。",
        "badge_top_match": "ベストマッチ",
        "cta_view": "製品を見る",
        "low_stock": "残り{count}点！",
        "action_compare": "製品を比較",
        "action_browse": "すべての製品を表示",
        "action_contact": "サポートに連絡",
    },
    "zh": {
        "showing_products": "这里有一些您可能喜欢的产品：",
        "featured_products": "查看我们的精选产品：",
        "no_products": "目前没有产品信息可用。请联系我们获取帮助。",
        "help_options": "我可以帮助您：\n• 浏览产品\n• 按关键词搜索\n• 查看分类\n• 检查价格和库存\n\n您想探索什么？",
        "semantic_excellent": "我为“{query}”找到了非常匹配的产品！",
        "semantic_good": "以下是与“{query}”相符的不错选择：",
        "semantic_related": "根据您对“{query}”的搜索，您可能对这些产品感兴趣：",
        "price_inquiry": "我可以帮助您找到符合您预算的产品。您在寻找什么价格范围？",
        "size_fit": "我可以帮您找到合适的尺码。您在找什么类型的产品？您的尺寸是多少？",
        "support": "我很乐意帮助您。能详细说说您需要什么帮助吗？",
        "greeting": "您好！我是您的购物助手。我可以帮您查找产品，解答价格和配送问题。今天您想找什么？",
        "thanks": "不客气！还有什么可以帮您的吗？",
        "comparison": "我很乐意帮您比较产品。您想比较哪些产品？",
        "availability": "我可以为您查询库存。您对哪款产品感兴趣？",
        "shipping_prefix": "配送政策：",
        "returns_prefix": "退货政策：",
        "shipping_generic": "如需配送信息，请联系我们或查看我们的政策。",
        "returns_generic": "如需退货信息，请联系我们或查看我们的政策。",
        "apology": "抱歉，我暂时无法回答。请稍后再试或联系店铺。",
        "badge_top_match": "最佳匹配",
        "cta_view": "查看产品",
        "low_stock": "仅剩{count}件！",
        "action_compare": "比较产品",
        "action_browse": "浏览所有产品",
        "action_contact": "联系支持",
    },
}

QUICK_REPLIES: Dict[str, Dict[bool, List[str]]] = {
    "en": {True: ["Show all products", "New arrivals", "Best sellers", "View categories"],
           False: ["Contact support", "View store", "Help"]},
    "fr": {True: ["Voir tous les produits", "Nouveautés", "Meilleures ventes", "Voir les catégories"],
           False: ["Contacter le support", "Voir la boutique", "Aide"]},
    "es": {True: ["Ver todos los productos", "Novedades", "Más vendidos", "Ver categorías"],
           False: ["Contactar soporte", "Ver tienda", "Ayuda"]},
    "de": {True: ["Alle Produkte anzeigen", "Neuankömmlinge", "Bestseller", "Kategorien anzeigen"],
           False: ["Support kontaktieren", "Shop ansehen", "Hilfe"]},
    "pt": {True: ["Ver todos os produtos", "Novidades", "Mais vendidos", "Ver categorias"],
           False: ["Contatar suporte", "Ver loja", "Ajuda"]},
    "it": {True: ["Vedi tutti i prodotti", "Novità", "Bestseller", "Visualizza categorie"],
           False: ["Contatta supporto", "Vedi negozio", "Aiuto"]},
    "zh": {True: ["显示所有产品", "新品上市", "畅销产品", "查看分类"],
           False: ["联系支持", "查看商店", "帮助"]},
    "ja": {True: ["すべての製品を表示", "新着商品", "ベストセラー", "カテゴリを表示"],
           False: ["サポートに連絡", "ストアを表示", "ヘルプ"]},
}


def message(locale: str, key: str, **kwargs) -> str:
    table = MESSAGES.get(normalize_locale(locale), MESSAGES[DEFAULT_LOCALE])
    template = table.get(key) or MESSAGES[DEFAULT_LOCALE][key]
    return template.format(**kwargs) if kwargs else template


def quick_replies(locale: str, has_products: bool) -> List[str]:
    table = QUICK_REPLIES.get(normalize_locale(locale), QUICK_REPLIES[DEFAULT_LOCALE])
    return list(table[bool(has_products)])
