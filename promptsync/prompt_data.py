"""
Bundled prompt data.

Seed dictionary of common Stable Diffusion / Danbooru tags and the default
category set. Keys are lowercased core texts.
"""

CATEGORY_CHARACTER = "角色特征"
CATEGORY_CLOTHING = "衣服特征"
CATEGORY_SCENE = "场景"
CATEGORY_CAMERA = "拍摄角度"
CATEGORY_LIGHTING = "光线效果"
CATEGORY_STYLE = "风格"
CATEGORY_QUALITY = "画面质量"
CATEGORY_LORA = "LoRA"
CATEGORY_OTHER = "其他"

# (id, name)
DEFAULT_CATEGORY_NAMES = (
    ("1", CATEGORY_CHARACTER),
    ("2", CATEGORY_CLOTHING),
    ("3", CATEGORY_SCENE),
    ("4", CATEGORY_CAMERA),
    ("5", CATEGORY_LIGHTING),
    ("6", CATEGORY_STYLE),
    ("7", CATEGORY_QUALITY),
    ("8", CATEGORY_LORA),
    ("9", CATEGORY_OTHER),
)

# key -> (translation, category)
SEED_DICTIONARY = {
    # ═══ Quality / Meta ═══
    "masterpiece": ("杰作", CATEGORY_QUALITY),
    "best quality": ("最佳质量", CATEGORY_QUALITY),
    "high quality": ("高质量", CATEGORY_QUALITY),
    "absurdres": ("超高分辨率", CATEGORY_QUALITY),
    "8k": ("8k分辨率", CATEGORY_QUALITY),
    "ultra detailed": ("超细节", CATEGORY_QUALITY),
    "highly detailed": ("高细节", CATEGORY_QUALITY),
    "raw photo": ("原片", CATEGORY_STYLE),
    "realistic": ("写实", CATEGORY_STYLE),
    "photorealistic": ("照片级真实", CATEGORY_STYLE),
    # ═══ Character ═══
    "1girl": ("1个女孩", CATEGORY_CHARACTER),
    "1boy": ("1个男孩", CATEGORY_CHARACTER),
    "solo": ("单人", CATEGORY_CHARACTER),
    "smile": ("微笑", CATEGORY_CHARACTER),
    "long hair": ("长发", CATEGORY_CHARACTER),
    "short hair": ("短发", CATEGORY_CHARACTER),
    "blonde hair": ("金发", CATEGORY_CHARACTER),
    "blue eyes": ("蓝眼", CATEGORY_CHARACTER),
    "looking at viewer": ("看镜头", CATEGORY_CHARACTER),
    "blush": ("脸红", CATEGORY_CHARACTER),
    # ═══ Clothing ═══
    "school uniform": ("校服", CATEGORY_CLOTHING),
    "dress": ("连衣裙", CATEGORY_CLOTHING),
    "skirt": ("裙子", CATEGORY_CLOTHING),
    "shirt": ("衬衫", CATEGORY_CLOTHING),
    "jeans": ("牛仔裤", CATEGORY_CLOTHING),
    # ═══ Scene ═══
    "outdoors": ("户外", CATEGORY_SCENE),
    "indoors": ("室内", CATEGORY_SCENE),
    "simple background": ("简单背景", CATEGORY_SCENE),
    "white background": ("白背景", CATEGORY_SCENE),
    "nature": ("自然", CATEGORY_SCENE),
    "sky": ("天空", CATEGORY_SCENE),
    "night": ("夜晚", CATEGORY_SCENE),
    "day": ("白天", CATEGORY_SCENE),
    # ═══ Camera / Angle ═══
    "full body": ("全身", CATEGORY_CAMERA),
    "upper body": ("上半身", CATEGORY_CAMERA),
    "portrait": ("肖像", CATEGORY_CAMERA),
    "cowboy shot": ("七分身", CATEGORY_CAMERA),
    "from above": ("俯视", CATEGORY_CAMERA),
    "from below": ("仰视", CATEGORY_CAMERA),
    "close-up": ("特写", CATEGORY_CAMERA),
    # ═══ Lighting ═══
    "cinematic lighting": ("电影光效", CATEGORY_LIGHTING),
    "soft lighting": ("柔光", CATEGORY_LIGHTING),
    "volumetric lighting": ("体积光", CATEGORY_LIGHTING),
    "backlighting": ("背光", CATEGORY_LIGHTING),
    # ═══ Style ═══
    "anime": ("动画风格", CATEGORY_STYLE),
    "oil painting": ("油画", CATEGORY_STYLE),
    "sketch": ("素描", CATEGORY_STYLE),
    "cyberpunk": ("赛博朋克", CATEGORY_STYLE),
}
