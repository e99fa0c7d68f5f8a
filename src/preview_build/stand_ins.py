"""CommonJS source text for the sandbox stand-in modules.

Every render function returns a self-contained module body that only assigns
`module.exports`; the bundle runtime supplies `module`, `exports` and `require`.
"""

from __future__ import annotations

import json

# Framework entry modules and the window global the host page must provide.
GLOBAL_SHIMS: dict[str, str] = {
    "react": "React",
    "react/jsx-runtime": "ReactJSXRuntime",
    "react/jsx-dev-runtime": "ReactJSXRuntime",
    "react-dom": "ReactDOM",
    "react-dom/client": "ReactDOM",
    "react-native": "ReactNativeWeb",
    "react-native-web": "ReactNativeWeb",
}


def _js(value: str) -> str:
    return json.dumps(value)


def render_global_shim(specifier: str, global_name: str) -> str:
    return (
        "var g=(typeof window!=='undefined'?window:globalThis);\n"
        f"var mod=g[{_js(global_name)}];\n"
        "if(mod===undefined||mod===null){\n"
        f"  throw new Error({_js(global_name)}+' not available on window (required by '+{_js(specifier)}+'). '"
        "+'Load it in the preview page before the bundle, e.g. via a CDN script tag.');\n"
        "}\n"
        "module.exports=mod;\n"
    )


def render_async_storage() -> str:
    # Backed by the browser key-value store; every method is async like the native API.
    return (
        "var store=(typeof localStorage!=='undefined')?localStorage:null;\n"
        "var mem={};\n"
        "function _get(k){return store?store.getItem(k):(k in mem?mem[k]:null);}\n"
        "function _set(k,v){if(store){store.setItem(k,String(v));}else{mem[k]=String(v);}}\n"
        "function _del(k){if(store){store.removeItem(k);}else{delete mem[k];}}\n"
        "function _keys(){return store?Object.keys(store):Object.keys(mem);}\n"
        "var AsyncStorage={\n"
        "  getItem:async function(k){return _get(k);},\n"
        "  setItem:async function(k,v){_set(k,v);},\n"
        "  removeItem:async function(k){_del(k);},\n"
        "  mergeItem:async function(k,v){\n"
        "    var cur={};try{cur=JSON.parse(_get(k)||'{}');}catch(e){cur={};}\n"
        "    _set(k,JSON.stringify(Object.assign(cur,JSON.parse(v))));\n"
        "  },\n"
        "  clear:async function(){if(store){store.clear();}else{mem={};}},\n"
        "  getAllKeys:async function(){return _keys();},\n"
        "  multiGet:async function(ks){return ks.map(function(k){return [k,_get(k)];});},\n"
        "  multiSet:async function(kv){kv.forEach(function(p){_set(p[0],p[1]);});},\n"
        "  multiRemove:async function(ks){ks.forEach(_del);}\n"
        "};\n"
        "module.exports=AsyncStorage;\n"
        "module.exports.default=AsyncStorage;\n"
    )


def render_cookies() -> str:
    return (
        "function _all(){\n"
        "  var out={};\n"
        "  if(typeof document==='undefined'||!document.cookie) return out;\n"
        "  document.cookie.split(';').forEach(function(part){\n"
        "    var i=part.indexOf('=');if(i<0) return;\n"
        "    var name=part.slice(0,i).trim();\n"
        "    out[name]={name:name,value:decodeURIComponent(part.slice(i+1).trim())};\n"
        "  });\n"
        "  return out;\n"
        "}\n"
        "var CookieManager={\n"
        "  get:async function(){return _all();},\n"
        "  set:async function(url,c){\n"
        "    if(typeof document!=='undefined'){document.cookie=c.name+'='+encodeURIComponent(c.value)+';path='+(c.path||'/');}\n"
        "    return true;\n"
        "  },\n"
        "  clearAll:async function(){\n"
        "    Object.keys(_all()).forEach(function(n){document.cookie=n+'=;expires=Thu, 01 Jan 1970 00:00:00 GMT;path=/';});\n"
        "    return true;\n"
        "  },\n"
        "  flush:async function(){}\n"
        "};\n"
        "module.exports=CookieManager;\n"
        "module.exports.default=CookieManager;\n"
    )


def render_reanimated() -> str:
    return (
        "var RN=(typeof window!=='undefined'&&window.ReactNativeWeb)||{};\n"
        "var Animated={View:RN.View,Text:RN.Text,ScrollView:RN.ScrollView,Image:RN.Image,\n"
        "  createAnimatedComponent:function(c){return c;}};\n"
        "function identity(v){return v;}\n"
        "module.exports={\n"
        "  default:Animated,\n"
        "  useSharedValue:function(initial){return {value:initial};},\n"
        "  useAnimatedStyle:function(fn){try{return fn();}catch(e){return {};}},\n"
        "  useDerivedValue:function(fn){return {value:fn()};},\n"
        "  withSpring:identity,withTiming:identity,withDelay:function(d,v){return v;},\n"
        "  withRepeat:identity,withSequence:function(){return arguments[arguments.length-1];},\n"
        "  runOnJS:identity,runOnUI:identity,\n"
        "  Easing:{linear:identity,ease:identity,inOut:function(){return identity;}}\n"
        "};\n"
    )


def render_gesture_handler() -> str:
    return (
        "var RN=(typeof window!=='undefined'&&window.ReactNativeWeb)||{};\n"
        "function passthrough(props){return props&&props.children!==undefined?props.children:null;}\n"
        "function gesture(){var g={};['onBegin','onStart','onUpdate','onEnd','onFinalize','enabled',"
        "'minDistance','numberOfTaps'].forEach(function(m){g[m]=function(){return g;};});return g;}\n"
        "module.exports={\n"
        "  GestureHandlerRootView:RN.View||passthrough,\n"
        "  GestureDetector:passthrough,\n"
        "  Swipeable:RN.View||passthrough,\n"
        "  TouchableOpacity:RN.TouchableOpacity||passthrough,\n"
        "  ScrollView:RN.ScrollView||passthrough,\n"
        "  Gesture:{Pan:gesture,Tap:gesture,Pinch:gesture,LongPress:gesture,Simultaneous:gesture},\n"
        "  State:{UNDETERMINED:0,FAILED:1,BEGAN:2,CANCELLED:3,ACTIVE:4,END:5}\n"
        "};\n"
    )


def render_safe_area_context() -> str:
    return (
        "var insets={top:0,bottom:0,left:0,right:0};\n"
        "var frame={x:0,y:0,width:375,height:812};\n"
        "var RN=(typeof window!=='undefined'&&window.ReactNativeWeb)||{};\n"
        "function SafeAreaProvider(props){return props.children;}\n"
        "module.exports={\n"
        "  SafeAreaProvider:SafeAreaProvider,\n"
        "  SafeAreaView:RN.View||SafeAreaProvider,\n"
        "  useSafeAreaInsets:function(){return insets;},\n"
        "  useSafeAreaFrame:function(){return frame;},\n"
        "  initialWindowMetrics:{insets:insets,frame:frame}\n"
        "};\n"
    )


def render_device_info() -> str:
    return (
        "var ua=(typeof navigator!=='undefined'&&navigator.userAgent)||'preview';\n"
        "var DeviceInfo={\n"
        "  getUniqueId:async function(){return 'preview-device';},\n"
        "  getDeviceId:function(){return 'preview';},\n"
        "  getModel:function(){return 'Preview';},\n"
        "  getSystemName:function(){return 'web';},\n"
        "  getSystemVersion:function(){return '0';},\n"
        "  getVersion:function(){return '0.0.0';},\n"
        "  getBuildNumber:function(){return '0';},\n"
        "  getUserAgent:async function(){return ua;},\n"
        "  isTablet:function(){return false;},\n"
        "  hasNotch:function(){return false;}\n"
        "};\n"
        "module.exports=DeviceInfo;\n"
        "module.exports.default=DeviceInfo;\n"
    )


def render_webview() -> str:
    return (
        "var React=(typeof window!=='undefined'&&window.React)||null;\n"
        "function WebView(props){\n"
        "  var src=props&&props.source?(props.source.uri||''):'';\n"
        "  if(!React) return null;\n"
        "  return React.createElement('iframe',{src:src,style:Object.assign({border:0,width:'100%',height:'100%'},props.style||{})});\n"
        "}\n"
        "module.exports=WebView;\n"
        "module.exports.default=WebView;\n"
        "module.exports.WebView=WebView;\n"
    )


def render_sdk_stub(package: str) -> str:
    """In-memory stand-in for backend SDKs whose real builds need filesystem access."""
    return (
        f"var PKG={_js(package)};\n"
        "function query(){\n"
        "  var q={find:async function(){return {items:[],totalCount:0};}};\n"
        "  ['limit','skip','ascending','descending','eq','ne','contains','hasSome','ge','le'].forEach(function(m){\n"
        "    q[m]=function(){return q;};\n"
        "  });\n"
        "  return q;\n"
        "}\n"
        "var records={};var seq=0;\n"
        "function nextId(){seq+=1;return 'mock-'+seq;}\n"
        "var items={\n"
        "  query:query,\n"
        "  get:async function(id){return records[id]||{_id:id};},\n"
        "  insert:async function(item){var id=nextId();records[id]=Object.assign({},item,{_id:id});return records[id];},\n"
        "  update:async function(id,item){records[id]=Object.assign({},item,{_id:id});return records[id];},\n"
        "  save:async function(item){var id=item._id||nextId();records[id]=Object.assign({},item,{_id:id});return records[id];},\n"
        "  remove:async function(id){delete records[id];return {_id:id};}\n"
        "};\n"
        "var handler={get:function(t,k){if(k in t) return t[k];return items;}};\n"
        "var api=(typeof Proxy!=='undefined')?new Proxy({items:items,__mock:PKG},handler):{items:items,__mock:PKG};\n"
        "module.exports=api;\n"
        "module.exports.default=api;\n"
    )


def render_empty_module(specifier: str) -> str:
    return (
        f"console.warn('[preview-mock] No stand-in for '+{_js(specifier)}+'; using an empty module');\n"
        "module.exports={};\n"
        "module.exports.default={};\n"
    )
